"""
Run the lead monitor: admission, processing and maintenance passes against
a shared headless browser, until SIGINT/SIGTERM.
"""
import logging
import os
import signal

from django.conf import settings
from django.core.management.base import BaseCommand

from leads.services.browser import PlaywrightBrowserDriver
from leads.services.engine import SubmissionEngine
from leads.services.monitor import LeadMonitor

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Run the lead automation monitor until interrupted'

    def add_arguments(self, parser):
        parser.add_argument(
            '--headed',
            action='store_true',
            help='Show the browser window (overrides AUTOMATION_HEADLESS)',
        )

    def handle(self, *args, **options):
        # Playwright's sync API keeps an event loop on this thread; Django
        # refuses ORM calls there unless told otherwise. All work is sequential.
        os.environ.setdefault('DJANGO_ALLOW_ASYNC_UNSAFE', 'true')

        headless = settings.AUTOMATION_HEADLESS and not options['headed']
        engine = SubmissionEngine(PlaywrightBrowserDriver(headless=headless))
        monitor = LeadMonitor(engine)

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down lead monitor")
            monitor.stop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, signal_handler)

        self.stdout.write(self.style.SUCCESS('Lead monitor started. Press Ctrl+C to stop.'))
        monitor.run()
        self.stdout.write('Lead monitor stopped.')
