"""
Live browser e2e tests against the local mock portal.

Requires Playwright's Chromium (`playwright install chromium`).
Set LIVE_BROWSER_E2E=1 to enable.
"""
import os
import logging
from urllib.parse import urlencode

import httpx
import pytest

from leads.services.browser import PlaywrightBrowserDriver
from leads.services.engine import REJECTED, SubmissionEngine
from leads.services.outcome import ASSUMED_SUCCESS, ERROR, SUCCESS
from tools import mock_portal


LIVE_BROWSER_E2E = os.getenv("LIVE_BROWSER_E2E", "").lower() in {"1", "true", "yes"}

logger = logging.getLogger(__name__)


pytestmark = pytest.mark.skipif(
    not LIVE_BROWSER_E2E,
    reason="LIVE_BROWSER_E2E not enabled (set LIVE_BROWSER_E2E=1)",
)


@pytest.fixture(scope="module")
def portal_url():
    server = mock_portal.start_in_background()
    host, port = server.server_address
    base_url = f"http://{host}:{port}"
    logger.info("Mock portal listening at %s", base_url)
    yield base_url
    server.shutdown()
    server.server_close()


@pytest.fixture
def engine(screenshot_dir):
    engine = SubmissionEngine(
        PlaywrightBrowserDriver(headless=True),
        screenshot_dir=str(screenshot_dir),
        navigation_timeout_ms=10000,
        ready_timeout_ms=5000,
    )
    try:
        engine.start()
    except Exception as e:
        pytest.skip(f"Chromium not available: {e}")
    yield engine
    engine.stop()


def _last_submission(base_url):
    return httpx.get(f"{base_url}/_last", timeout=3.0).json()["last"]


def test_prefilled_url_is_accepted(engine, portal_url, screenshot_dir):
    params = {"firstname": "Jane", "lastname": "Doe", "email": "jane@x.com", "phone1": "5550001111"}

    outcome = engine.submit(1, f"{portal_url}/portal/accept?{urlencode(params)}")

    assert outcome.success is True
    assert outcome.http_status == 200
    assert outcome.response_message == SUCCESS
    assert _last_submission(portal_url)["params"] == params
    assert outcome.screenshot_path.startswith(str(screenshot_dir))


def test_unrecognised_page_is_assumed_accepted(engine, portal_url):
    outcome = engine.submit(2, f"{portal_url}/portal/plain?firstname=Jane")

    assert outcome.success is True
    assert outcome.response_message == ASSUMED_SUCCESS


def test_error_text_fails_the_attempt(engine, portal_url):
    outcome = engine.submit(3, f"{portal_url}/portal/invalid?phone1=1")

    assert outcome.success is False
    assert outcome.response_message == ERROR
    assert outcome.retryable is True


def test_client_error_is_terminal(engine, portal_url):
    outcome = engine.submit(4, f"{portal_url}/portal/reject?firstname=Jane")

    assert outcome.success is False
    assert outcome.http_status == 400
    assert outcome.response_message == REJECTED
    assert outcome.retryable is False


def test_server_error_is_retryable(engine, portal_url):
    outcome = engine.submit(5, f"{portal_url}/portal/broken?firstname=Jane")

    assert outcome.http_status == 500
    assert outcome.retryable is True


def test_form_page_is_submitted(engine, portal_url):
    outcome = engine.submit(6, f"{portal_url}/portal/form")

    assert outcome.success is True
    assert _last_submission(portal_url)["path"] == "/portal/submitted"
