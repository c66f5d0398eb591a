"""
Lightweight mock form portal for local runs and live browser e2e testing.

Endpoints:
- GET  /portal/accept?...    -> 200 "thank you" page, records query params
- GET  /portal/plain?...     -> 200 page with no recognisable outcome text
- GET  /portal/invalid?...   -> 200 page reporting invalid input
- GET  /portal/form          -> 200 page with a form and submit button
- POST /portal/submitted     -> 200 confirmation page
- GET  /portal/reject?...    -> 400 rejection page
- GET  /portal/broken?...    -> 500 error page
- GET  /_last                -> last recorded submission
- POST /_reset               -> clears recorded submission
- GET  /_health              -> returns 200
"""
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlsplit


LAST_SUBMISSION: Optional[dict] = None

PAGES = {
    "/portal/accept": (200, "Thank you! Your information has been submitted."),
    "/portal/plain": (200, "Welcome to the enrollment portal."),
    "/portal/invalid": (200, "Invalid phone number. Please correct and try again."),
    "/portal/reject": (400, "Bad request."),
    "/portal/broken": (500, "Internal server error."),
}

FORM_PAGE = """<html><body>
<h1>Enrollment</h1>
<form method="post" action="/portal/submitted">
  <input name="firstname" value="">
  <button type="submit">Submit</button>
</form>
</body></html>"""


def _html(message: str) -> str:
    return f"<html><head><title>Portal</title></head><body><p>{message}</p></body></html>"


class Handler(BaseHTTPRequestHandler):
    def _send(self, status_code: int, body: str, content_type: str = "text/html") -> None:
        data = body.encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", f"{content_type}; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _send_json(self, status_code: int, payload: dict) -> None:
        self._send(status_code, json.dumps(payload), "application/json")

    def _record(self, path: str, params: dict) -> None:
        global LAST_SUBMISSION
        LAST_SUBMISSION = {"path": path, "params": params}

    def do_GET(self):  # noqa: N802
        parts = urlsplit(self.path)
        params = {k: v[0] for k, v in parse_qs(parts.query).items()}

        if parts.path == "/_health":
            return self._send_json(200, {"status": "ok"})

        if parts.path == "/_last":
            return self._send_json(200, {"last": LAST_SUBMISSION})

        if parts.path == "/portal/form":
            return self._send(200, FORM_PAGE)

        if parts.path in PAGES:
            self._record(parts.path, params)
            status_code, message = PAGES[parts.path]
            return self._send(status_code, _html(message))

        return self._send_json(404, {"error": "not_found"})

    def do_POST(self):  # noqa: N802
        global LAST_SUBMISSION

        if self.path == "/_reset":
            LAST_SUBMISSION = None
            return self._send_json(200, {"status": "reset"})

        if self.path == "/portal/submitted":
            length = int(self.headers.get("Content-Length", "0"))
            raw = self.rfile.read(length).decode("utf-8") if length else ""
            self._record(self.path, {k: v[0] for k, v in parse_qs(raw).items()})
            return self._send(200, _html("Submission received. Thank you!"))

        return self._send_json(404, {"error": "not_found"})

    def log_message(self, format, *args):  # noqa: A003
        # Silence default logging to keep test output clean.
        return


def start_in_background(host: str = "127.0.0.1", port: int = 0) -> ThreadingHTTPServer:
    """Start the portal on a daemon thread; port 0 picks a free port."""
    server = ThreadingHTTPServer((host, port), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


def main() -> None:
    server = ThreadingHTTPServer(("0.0.0.0", 8090), Handler)
    server.serve_forever()


if __name__ == "__main__":
    main()
