"""
Submission engine: drives the shared browser to a pre-filled portal URL and
turns whatever happens into a SubmissionOutcome. It never raises.
"""
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from django.conf import settings
from django.utils import timezone
from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from leads.services.browser import BrowserDriver
from leads.services.outcome import ERROR, KeywordOutcomeClassifier, OutcomeClassifier

logger = logging.getLogger(__name__)

REJECTED = 'REJECTED'


class SubmissionError(Exception):
    """Raised inside a submission when the portal cannot be driven."""
    pass


@dataclass
class SubmissionOutcome:
    success: bool
    duration_ms: int
    http_status: Optional[int] = None
    screenshot_path: Optional[str] = None
    error_message: Optional[str] = None
    response_message: Optional[str] = None
    response_data: Optional[dict] = None
    retryable: bool = True


class SubmissionEngine:
    """
    Owns the browser driver for the lifetime of the monitor process and
    submits one lead at a time through an isolated page.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        classifier: Optional[OutcomeClassifier] = None,
        screenshot_dir: Optional[str] = None,
        navigation_timeout_ms: Optional[int] = None,
        ready_timeout_ms: Optional[int] = None,
        restart_threshold: Optional[int] = None,
    ):
        self.driver = driver
        self.classifier = classifier or KeywordOutcomeClassifier(
            settle_ms=settings.AUTOMATION_SETTLE_MS,
            submit_wait_timeout_ms=settings.AUTOMATION_SUBMIT_WAIT_TIMEOUT_MS,
        )
        self.screenshot_dir = Path(screenshot_dir or settings.AUTOMATION_SCREENSHOT_DIR)
        self.navigation_timeout_ms = navigation_timeout_ms or settings.AUTOMATION_NAVIGATION_TIMEOUT_MS
        self.ready_timeout_ms = ready_timeout_ms or settings.AUTOMATION_READY_TIMEOUT_MS
        self.restart_threshold = restart_threshold or settings.AUTOMATION_BROWSER_RESTART_THRESHOLD
        self._infrastructure_failures = 0

    def start(self) -> None:
        self.ensure_screenshot_dir()
        self.driver.start()

    def stop(self) -> None:
        self.driver.stop()

    def ensure_screenshot_dir(self) -> None:
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create screenshot directory {self.screenshot_dir}: {e}")

    def submit(self, lead_id, url: str) -> SubmissionOutcome:
        """
        Navigate to the constructed URL and classify the result.

        Args:
            lead_id: Lead being submitted (used for screenshot names and logs)
            url: Fully-qualified pre-filled portal URL

        Returns:
            SubmissionOutcome; failures carry the error message and whether
            a retry makes sense
        """
        started = time.monotonic()
        logger.info(f"Submitting lead {lead_id} to portal")

        try:
            with self.driver.page() as page:
                outcome = self._drive(page, lead_id, url, started)
        except Exception as e:
            # Page acquisition or release failed: the browser itself is unhealthy
            logger.error(f"Browser failure submitting lead {lead_id}: {e}", exc_info=True)
            outcome = SubmissionOutcome(
                success=False,
                duration_ms=self._elapsed_ms(started),
                http_status=0,
                error_message=str(e) or e.__class__.__name__,
                response_message=ERROR,
            )
            self._record_infrastructure_failure()
            return outcome

        if outcome.success:
            logger.info(f"Portal submission for lead {lead_id} completed in {outcome.duration_ms}ms")
        else:
            logger.warning(f"Portal submission for lead {lead_id} failed: {outcome.error_message}")
        return outcome

    def _drive(self, page, lead_id, url: str, started: float) -> SubmissionOutcome:
        initial_screenshot = None
        status_code = None

        try:
            page.set_default_timeout(self.navigation_timeout_ms)
            page.set_default_navigation_timeout(self.navigation_timeout_ms)

            response = page.goto(url, wait_until='domcontentloaded', timeout=self.navigation_timeout_ms)
            if response is None:
                raise SubmissionError('No response received from portal')

            status_code = response.status
            logger.info(f"Portal response status: {status_code}")
            initial_screenshot = self.take_screenshot(page, lead_id, '_initial')

            if status_code >= 400:
                self._infrastructure_failures = 0
                return SubmissionOutcome(
                    success=False,
                    duration_ms=self._elapsed_ms(started),
                    http_status=status_code,
                    screenshot_path=initial_screenshot,
                    error_message=f"Portal returned error status: {status_code}",
                    response_message=REJECTED if status_code < 500 else ERROR,
                    retryable=status_code >= 500,
                )

            page.wait_for_load_state('networkidle', timeout=self.ready_timeout_ms)
            verdict = self.classifier.classify(page, url)
            final_screenshot = self.take_screenshot(page, lead_id, '_final')

            self._infrastructure_failures = 0
            return SubmissionOutcome(
                success=verdict.success,
                duration_ms=self._elapsed_ms(started),
                http_status=status_code,
                screenshot_path=final_screenshot or initial_screenshot,
                error_message=verdict.error,
                response_message=verdict.message,
                response_data={
                    'url': page.url,
                    'final_status': 'submitted' if verdict.success else 'uncertain',
                },
            )

        except Exception as e:
            error_screenshot = self.take_screenshot(page, lead_id, '_error')
            if isinstance(e, PlaywrightTimeoutError):
                logger.warning(f"Timeout submitting lead {lead_id}: {e}")
            else:
                logger.error(f"Portal submission failed for lead {lead_id}: {e}", exc_info=True)

            if isinstance(e, PlaywrightError) and not isinstance(e, PlaywrightTimeoutError) \
                    and not self.driver.is_connected():
                self._record_infrastructure_failure()
            else:
                self._infrastructure_failures = 0

            return SubmissionOutcome(
                success=False,
                duration_ms=self._elapsed_ms(started),
                http_status=status_code or 0,
                screenshot_path=error_screenshot or initial_screenshot,
                error_message=str(e) or e.__class__.__name__,
                response_message=ERROR,
            )

    def take_screenshot(self, page, lead_id, suffix: str = '') -> Optional[str]:
        """Full-page screenshot; failures are logged and never escalate."""
        timestamp = timezone.now().strftime('%Y-%m-%dT%H-%M-%S-%f')
        path = self.screenshot_dir / f"lead_{lead_id}_{timestamp}{suffix}.png"
        try:
            page.screenshot(path=str(path), full_page=True)
            return str(path)
        except Exception as e:
            logger.warning(f"Failed to take screenshot {path.name}: {e}")
            return None

    def _record_infrastructure_failure(self) -> None:
        self._infrastructure_failures += 1
        if self._infrastructure_failures < self.restart_threshold:
            return

        logger.error(
            f"{self._infrastructure_failures} consecutive browser failures, restarting browser"
        )
        self._infrastructure_failures = 0
        try:
            self.driver.restart()
        except Exception as e:
            logger.error(f"Browser restart failed: {e}", exc_info=True)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def cleanup_old_screenshots(self, days_old: int = 7) -> int:
        """
        Delete screenshots older than `days_old` days.

        Returns:
            Number of files deleted
        """
        cutoff = (timezone.now() - timedelta(days=days_old)).timestamp()
        deleted = 0
        try:
            for path in self.screenshot_dir.glob('*.png'):
                try:
                    if path.stat().st_mtime < cutoff:
                        path.unlink()
                        deleted += 1
                        logger.debug(f"Deleted old screenshot: {path.name}")
                except OSError as e:
                    logger.warning(f"Could not delete screenshot {path.name}: {e}")
        except OSError as e:
            logger.warning(f"Error cleaning up screenshots: {e}")

        if deleted:
            logger.info(f"Deleted {deleted} screenshots older than {days_old} days")
        return deleted
