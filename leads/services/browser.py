"""
Headless browser handle shared across portal submissions.

Each submission gets its own browser context (cookies, storage) and page,
released when the `page()` block exits, whatever happened inside it.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from playwright.sync_api import Browser, Error as PlaywrightError, Page, Playwright, Route, sync_playwright

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
DEFAULT_VIEWPORT = {'width': 1366, 'height': 768}
BLOCKED_RESOURCE_TYPES = ('image', 'font', 'media')
LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
]


class BrowserUnavailable(Exception):
    """Raised when the browser process cannot be started."""
    pass


class BrowserDriver:
    """
    Capability interface for the shared browser.

    Call sites only use start/stop/restart and the scoped `page()` context
    manager, so a pooled implementation can replace a single handle.
    """

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def is_connected(self) -> bool:
        raise NotImplementedError

    def restart(self) -> None:
        logger.warning("Restarting browser")
        self.stop()
        self.start()

    def page(self):
        """Context manager yielding an isolated page that is always closed."""
        raise NotImplementedError


class PlaywrightBrowserDriver(BrowserDriver):
    """Single long-lived Chromium process driven through Playwright's sync API."""

    def __init__(
        self,
        headless: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
        viewport: Optional[dict] = None,
        blocked_resource_types: Sequence[str] = BLOCKED_RESOURCE_TYPES,
    ):
        self.headless = headless
        self.user_agent = user_agent
        self.viewport = viewport or dict(DEFAULT_VIEWPORT)
        self.blocked_resource_types = frozenset(blocked_resource_types)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    def start(self) -> None:
        if self._browser is not None:
            return
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
            )
        except PlaywrightError as e:
            logger.error(f"Failed to launch browser: {e}")
            self._stop_playwright()
            raise BrowserUnavailable(f"Browser initialization failed: {e}") from e
        logger.info("Browser started")

    def stop(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None
        self._stop_playwright()
        logger.info("Browser stopped")

    def _stop_playwright(self) -> None:
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self._playwright = None

    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def _route(self, route: Route) -> None:
        if route.request.resource_type in self.blocked_resource_types:
            route.abort()
        else:
            route.continue_()

    @contextmanager
    def page(self) -> Iterator[Page]:
        if self._browser is None:
            self.start()

        context = self._browser.new_context(
            user_agent=self.user_agent,
            viewport=self.viewport,
        )
        try:
            page = context.new_page()
            page.route('**/*', self._route)
            yield page
        finally:
            try:
                context.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing page: {e}")
