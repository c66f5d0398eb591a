"""
Deciding whether a portal accepted a submission.

The default classifier is a keyword heuristic: it can misread unrelated page
copy and it treats an unrecognised page as accepted. Stricter classifiers
(explicit confirmation element, redirect target) plug in through
OutcomeClassifier without touching the engine or the monitor.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urlsplit

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

logger = logging.getLogger(__name__)

SUCCESS_KEYWORDS = (
    'success',
    'thank you',
    'submitted',
    'complete',
    'confirmed',
    'received',
    'processed',
)
ERROR_KEYWORDS = ('error', 'failed', 'invalid', 'required')
SUBMIT_SELECTOR = 'input[type="submit"], button[type="submit"], button:has-text("submit")'

# Portal response messages
SUCCESS = 'SUCCESS'
ASSUMED_SUCCESS = 'ASSUMED_SUCCESS'
ERROR = 'ERROR'


@dataclass(frozen=True)
class Verdict:
    success: bool
    message: str
    error: Optional[str] = None


class OutcomeClassifier:
    """Inspects a loaded portal page and decides the submission outcome."""

    def classify(self, page, url: str) -> Verdict:
        raise NotImplementedError


class KeywordOutcomeClassifier(OutcomeClassifier):
    """
    Pre-filled URL submissions are judged by success/error keywords in the
    page; form pages get their submit control clicked. Pages matching
    neither are assumed accepted (ASSUMED_SUCCESS).
    """

    def __init__(
        self,
        success_keywords: Sequence[str] = SUCCESS_KEYWORDS,
        error_keywords: Sequence[str] = ERROR_KEYWORDS,
        submit_selector: str = SUBMIT_SELECTOR,
        settle_ms: int = 2000,
        submit_wait_timeout_ms: int = 15000,
    ):
        self.success_keywords = tuple(k.lower() for k in success_keywords)
        self.error_keywords = tuple(k.lower() for k in error_keywords)
        self.submit_selector = submit_selector
        self.settle_ms = settle_ms
        self.submit_wait_timeout_ms = submit_wait_timeout_ms

    def classify(self, page, url: str) -> Verdict:
        forms = page.locator('form').count()
        logger.debug(f"Found {forms} forms on the page")

        if forms == 0 or urlsplit(url).query:
            return self._classify_direct(page)
        return self._submit_form(page)

    def _classify_direct(self, page) -> Verdict:
        # Give portal-side scripts time to process the parameters
        page.wait_for_timeout(self.settle_ms)

        text = (page.text_content('body') or '').lower()
        content = page.content().lower()

        if any(k in text or k in content for k in self.success_keywords):
            return Verdict(True, SUCCESS)

        if any(k in text for k in self.error_keywords):
            return Verdict(False, ERROR, 'Portal indicates submission errors')

        logger.warning("Portal page matched no success or error keywords, assuming success")
        return Verdict(True, ASSUMED_SUCCESS)

    def _submit_form(self, page) -> Verdict:
        submit_button = page.locator(self.submit_selector).first

        if submit_button.count() == 0:
            logger.info("No submit control found, assuming pre-filled URL submission")
            return Verdict(True, ASSUMED_SUCCESS)

        logger.info("Found submit control, clicking")
        submit_button.click()
        try:
            page.wait_for_load_state('networkidle', timeout=self.submit_wait_timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("Timeout waiting for form submission response")
        return Verdict(True, SUCCESS)
