"""
Tests for the keyword outcome classifier.
"""
import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from conftest import FakePage
from leads.services.outcome import (
    ASSUMED_SUCCESS,
    ERROR,
    SUCCESS,
    KeywordOutcomeClassifier,
    OutcomeClassifier,
    Verdict,
)

DIRECT_URL = 'https://portal.example.com/submit?firstname=Jane'
FORM_URL = 'https://portal.example.com/form'


@pytest.fixture
def classifier():
    return KeywordOutcomeClassifier(settle_ms=0, submit_wait_timeout_ms=100)


class TestDirectSubmission:

    @pytest.mark.parametrize('text', [
        'Thank you for your submission',
        'Your application was RECEIVED',
        'Enrollment complete',
    ])
    def test_success_keywords(self, classifier, text):
        assert classifier.classify(FakePage(body_text=text), DIRECT_URL) == Verdict(True, SUCCESS)

    def test_success_wins_over_error_words(self, classifier):
        page = FakePage(body_text='Submitted. No errors found.')
        assert classifier.classify(page, DIRECT_URL).success is True

    def test_error_keywords(self, classifier):
        verdict = classifier.classify(FakePage(body_text='Email is required'), DIRECT_URL)
        assert verdict == Verdict(False, ERROR, 'Portal indicates submission errors')

    def test_unrecognised_page_is_assumed_success(self, classifier):
        verdict = classifier.classify(FakePage(body_text='Welcome'), DIRECT_URL)
        assert verdict == Verdict(True, ASSUMED_SUCCESS)

    def test_query_url_is_direct_even_with_forms(self, classifier):
        page = FakePage(body_text='Welcome', forms=1, submit_buttons=1)

        classifier.classify(page, DIRECT_URL)

        assert page.clicked is False

    def test_settle_time(self):
        page = FakePage(body_text='Thank you')
        KeywordOutcomeClassifier(settle_ms=1500).classify(page, DIRECT_URL)
        assert page.timeouts['settle'] == 1500


class TestFormSubmission:

    def test_clicks_submit(self, classifier):
        page = FakePage(body_text='Enrollment', forms=1, submit_buttons=1)

        verdict = classifier.classify(page, FORM_URL)

        assert page.clicked is True
        assert verdict == Verdict(True, SUCCESS)

    def test_wait_timeout_after_click_is_tolerated(self, classifier):
        page = FakePage(forms=1, submit_buttons=1, load_error=PlaywrightTimeoutError('timeout'))
        assert classifier.classify(page, FORM_URL).success is True

    def test_no_submit_control(self, classifier):
        page = FakePage(forms=1, submit_buttons=0)
        assert classifier.classify(page, FORM_URL) == Verdict(True, ASSUMED_SUCCESS)


class TestCustomClassifier:

    def test_base_class_is_abstract(self):
        with pytest.raises(NotImplementedError):
            OutcomeClassifier().classify(FakePage(), FORM_URL)

    def test_custom_keywords(self):
        classifier = KeywordOutcomeClassifier(success_keywords=['Bestätigt'], settle_ms=0)
        page = FakePage(body_text='Anmeldung bestätigt')
        assert classifier.classify(page, DIRECT_URL).success is True
