import os
import sys
from contextlib import contextmanager

import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'portal_gateway.settings')


JANE_MAPPING = {
    'first_name': 'firstname',
    'last_name': 'lastname',
    'email': 'email',
    'phone': 'phone1',
}


class FakeResponse:
    def __init__(self, status=200):
        self.status = status


class FakeLocator:
    def __init__(self, page, count):
        self.page = page
        self._count = count
        self.clicks = 0

    @property
    def first(self):
        return self

    def count(self):
        return self._count

    def click(self):
        self.clicks += 1
        self.page.clicked = True


class FakePage:
    """
    Stand-in for a Playwright page.

    Configure what navigation returns (`status`, `goto_error`), what the page
    shows (`body_text`, `forms`, `submit_buttons`) and whether screenshots
    or load-state waits fail.
    """

    def __init__(self, status=200, body_text='', forms=0, submit_buttons=0,
                 goto_error=None, load_error=None, screenshot_error=None, no_response=False):
        self.status = status
        self.body_text = body_text
        self.forms = forms
        self.submit_buttons = submit_buttons
        self.goto_error = goto_error
        self.load_error = load_error
        self.screenshot_error = screenshot_error
        self.no_response = no_response
        self.url = 'about:blank'
        self.visited = []
        self.screenshots = []
        self.clicked = False
        self.timeouts = {}
        self.submit_locator = FakeLocator(self, submit_buttons)

    def set_default_timeout(self, timeout):
        self.timeouts['default'] = timeout

    def set_default_navigation_timeout(self, timeout):
        self.timeouts['navigation'] = timeout

    def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url
        if self.no_response:
            return None
        return FakeResponse(self.status)

    def wait_for_load_state(self, state=None, timeout=None):
        if self.load_error is not None:
            raise self.load_error

    def wait_for_timeout(self, timeout):
        self.timeouts['settle'] = timeout

    def screenshot(self, path=None, full_page=False):
        if self.screenshot_error is not None:
            raise self.screenshot_error
        self.screenshots.append(path)

    def locator(self, selector):
        if selector == 'form':
            return FakeLocator(self, self.forms)
        return self.submit_locator

    def text_content(self, selector):
        return self.body_text

    def content(self):
        return f"<html><body>{self.body_text}</body></html>"


class FakeDriver:
    """Browser driver handing out a prepared FakePage and tracking its lifecycle."""

    def __init__(self, page=None, page_error=None):
        self.next_page = page or FakePage()
        self.page_error = page_error
        self.connected = True
        self.starts = 0
        self.stops = 0
        self.restarts = 0
        self.pages_opened = 0
        self.pages_closed = 0

    def start(self):
        self.starts += 1

    def stop(self):
        self.stops += 1

    def is_connected(self):
        return self.connected

    def restart(self):
        self.restarts += 1

    @contextmanager
    def page(self):
        if self.page_error is not None:
            raise self.page_error
        self.pages_opened += 1
        try:
            yield self.next_page
        finally:
            self.pages_closed += 1


@pytest.fixture
def fake_page():
    return FakePage(body_text='Thank you, your request was received.')


@pytest.fixture
def fake_driver(fake_page):
    return FakeDriver(fake_page)


@pytest.fixture
def screenshot_dir(tmp_path):
    path = tmp_path / 'screenshots'
    path.mkdir()
    return path


@pytest.fixture
def tenant(db):
    from leads.models import Tenant
    return Tenant.objects.create(name='Acme Enrollment')


@pytest.fixture
def other_tenant(db):
    from leads.models import Tenant
    return Tenant.objects.create(name='Other Co')


@pytest.fixture
def portal_config(tenant):
    """Active auto-submit configuration mapping the four core contact fields."""
    from leads.models import PortalConfig
    return PortalConfig.objects.create(
        tenant=tenant,
        portal_id='enroll',
        portal_url='https://portal.example.com/submit',
        field_mapping=dict(JANE_MAPPING),
        default_values={'us_citizen': 'yes'},
        auto_submit=True,
        retry_attempts=3,
        retry_delay_minutes=5,
    )


@pytest.fixture
def make_lead(tenant):
    """Factory creating leads for the default tenant."""
    from leads.models import Lead

    def _make_lead(**overrides):
        values = {
            'tenant': tenant,
            'first_name': 'Jane',
            'last_name': 'Doe',
            'email': 'jane@x.com',
            'phone': '555-000-1111',
        }
        values.update(overrides)
        return Lead.objects.create(**values)

    return _make_lead


@pytest.fixture
def jane_lead(make_lead):
    return make_lead()


@pytest.fixture
def confirmed_lead(make_lead):
    from leads.models import Lead
    return make_lead(status=Lead.Status.CONFIRMED)
