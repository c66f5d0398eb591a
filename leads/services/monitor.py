"""
Lead monitor: admits confirmed leads into the automation queue, drives one
portal submission at a time, and reclaims old diagnostic screenshots.

Workflow of a processing pass:
1. Claim the next eligible queue item (conditional QUEUED -> PROCESSING)
2. Load and decode the tenant's portal configuration
3. Build the pre-filled submission URL
4. Submit through the shared browser
5. Record the attempt in the automation log
6. Apply success / retry / terminal transition to queue item and lead
"""
import logging
import threading
import time
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Exists, OuterRef
from django.utils import timezone

from leads.models import Lead, PortalConfig, QueueItem
from leads.services.automation_log import complete_attempt, record_outcome, start_attempt
from leads.services.engine import SubmissionEngine
from leads.services.lead_status import transition_lead
from leads.services.mapping import build_submission
from leads.services.outcome import ERROR
from leads.services.portal_config import PortalConfigError, PortalSettings, get_active_portal_config
from leads.services.queue import (
    claim_next,
    enqueue,
    mark_completed,
    mark_failed,
    record_failure,
    release_stale_claims,
    requeue,
)
from leads.services.scheduler import RecurringScheduler, RecurringTask

logger = logging.getLogger(__name__)

VALIDATION_FAILED = 'VALIDATION_FAILED'


class LeadNotFound(Exception):
    """Raised when an operator action names an unknown lead."""
    pass


class PortalNotConfigured(Exception):
    """Raised when the lead's tenant has no active portal configuration."""
    pass


class LeadBusy(Exception):
    """Raised when the lead is being submitted right now."""
    pass


class LeadMonitor:
    """
    Owns the submission engine for the process lifetime and schedules the
    admission, processing and maintenance passes.
    """

    def __init__(self, engine: SubmissionEngine, scheduler: Optional[RecurringScheduler] = None):
        self.engine = engine
        self.scheduler = scheduler or RecurringScheduler()
        # In-process guard; the database claim protects across processes
        self._processing = threading.Lock()

    def start(self) -> None:
        """Acquire the browser and register the recurring passes."""
        logger.info("Starting lead monitor")
        self.engine.start()

        jitter = settings.AUTOMATION_SCHEDULER_JITTER_SECONDS
        self.scheduler.add(RecurringTask(
            name='admission',
            interval_seconds=settings.AUTOMATION_ADMISSION_INTERVAL_SECONDS,
            func=self.admit_confirmed_leads,
            jitter_seconds=jitter,
        ))
        self.scheduler.add(RecurringTask(
            name='processing',
            interval_seconds=settings.AUTOMATION_PROCESSING_INTERVAL_SECONDS,
            func=self.process_next,
            jitter_seconds=jitter,
        ))
        self.scheduler.add(RecurringTask(
            name='maintenance',
            interval_seconds=settings.AUTOMATION_MAINTENANCE_INTERVAL_SECONDS,
            func=self.run_maintenance,
            jitter_seconds=jitter,
            run_immediately=False,
        ))

    def run(self) -> None:
        """Start, block until stop() is called, then release the browser."""
        try:
            self.start()
            self.scheduler.run()
        finally:
            self.shutdown()

    def stop(self) -> None:
        """Ask the scheduler loop to exit; safe to call from a signal handler."""
        self.scheduler.stop()

    def shutdown(self) -> None:
        logger.info("Stopping lead monitor")
        try:
            self.engine.stop()
        except Exception as e:
            logger.error(f"Error releasing browser: {e}", exc_info=True)
        logger.info("Lead monitor stopped")

    def admit_confirmed_leads(self, batch_size: Optional[int] = None) -> int:
        """
        Queue CONFIRMED leads that have no queue item yet.

        Leads of tenants without an active auto-submit portal configuration
        are skipped untouched. A lead whose admission fails is rolled back to
        CONFIRMED so the next pass picks it up again.

        Returns:
            Number of leads admitted
        """
        batch_size = batch_size or settings.AUTOMATION_ADMISSION_BATCH_SIZE
        release_stale_claims(settings.AUTOMATION_STALE_CLAIM_MINUTES)

        configured = PortalConfig.objects.filter(
            tenant_id=OuterRef('tenant_id'),
            is_active=True,
            auto_submit=True,
        )
        confirmed_leads = list(
            Lead.objects
            .filter(status=Lead.Status.CONFIRMED, queue_item__isnull=True)
            .filter(Exists(configured))
            .select_related('tenant')
            .order_by('updated_at', 'id')[:batch_size]
        )
        if not confirmed_leads:
            return 0

        logger.info(f"Found {len(confirmed_leads)} confirmed leads to admit")
        admitted = 0

        for lead in confirmed_leads:
            config = get_active_portal_config(lead.tenant_id, auto_submit_only=True)
            if config is None:
                # Deactivated since the batch was selected
                logger.warning(f"No active portal config for tenant {lead.tenant} ({lead.tenant_id}), lead {lead.id} skipped")
                continue

            try:
                if not transition_lead(
                    lead.id,
                    [Lead.Status.CONFIRMED],
                    Lead.Status.ENTRY_IN_PROGRESS,
                    reason='Queued for portal entry',
                ):
                    continue

                enqueue(
                    lead,
                    priority=settings.AUTOMATION_DEFAULT_PRIORITY,
                    max_attempts=config.retry_attempts,
                )
                admitted += 1

            except Exception as e:
                logger.error(f"Error admitting confirmed lead {lead.id}: {e}", exc_info=True)
                try:
                    transition_lead(
                        lead.id,
                        [Lead.Status.ENTRY_IN_PROGRESS],
                        Lead.Status.CONFIRMED,
                        reason='Admission failed, retrying on next pass',
                        notes=str(e),
                    )
                except Exception as reset_error:
                    logger.error(f"Error resetting lead {lead.id} status: {reset_error}", exc_info=True)

        return admitted

    def process_next(self) -> bool:
        """
        Claim and submit at most one eligible queue item.

        Returns:
            True if an item was processed
        """
        if not self._processing.acquire(blocking=False):
            logger.debug("Processing pass already running, skipping")
            return False

        try:
            item = claim_next()
            if item is None:
                return False

            logger.info(f"Processing lead {item.lead_id} from queue (item {item.id})")
            try:
                self._process_item(item)
            except Exception as e:
                logger.error(f"Error processing queue item {item.id}: {e}", exc_info=True)
                record_failure(item, str(e), settings.AUTOMATION_DEFAULT_RETRY_DELAY_MINUTES)
            return True
        finally:
            self._processing.release()

    def _process_item(self, item: QueueItem) -> None:
        lead = item.lead
        attempt_number = item.attempt_count + 1

        config = get_active_portal_config(lead.tenant_id)
        try:
            if config is None:
                raise PortalConfigError('No active portal configuration found')
            portal = PortalSettings.from_config(config)
        except PortalConfigError as e:
            entry = start_attempt(lead, config, attempt_number)
            complete_attempt(entry, success=False, processing_time_ms=0,
                             portal_response_message=ERROR, error_message=str(e))
            record_failure(item, str(e), settings.AUTOMATION_DEFAULT_RETRY_DELAY_MINUTES)
            return

        url, errors = build_submission(
            portal.portal_url,
            lead,
            portal.field_mapping,
            portal.default_values,
            submitted_at=timezone.now(),
            source_tag=settings.AUTOMATION_SOURCE_TAG,
            transaction_prefix=settings.AUTOMATION_TRANSACTION_PREFIX,
        )

        if errors:
            # Bad lead data does not heal by retrying: fail visibly for an operator
            error = f"Validation failed: {', '.join(errors)}"
            entry = start_attempt(lead, config, attempt_number)
            complete_attempt(entry, success=False, processing_time_ms=0,
                             portal_response_message=VALIDATION_FAILED, error_message=error)
            mark_failed(item, error)
            return

        entry = start_attempt(lead, config, attempt_number, url)
        started = time.monotonic()
        try:
            outcome = self.engine.submit(lead.id, url)
            record_outcome(entry, outcome)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Submission of lead {lead.id} raised: {error}", exc_info=True)
            if entry.completed_at is None:
                complete_attempt(entry, success=False,
                                 processing_time_ms=int((time.monotonic() - started) * 1000),
                                 portal_response_message=ERROR, error_message=error)
            record_failure(item, error, portal.retry_delay_minutes)
            return

        if outcome.success:
            mark_completed(item)
            logger.info(f"Successfully entered lead {lead.id}")
        elif not outcome.retryable:
            mark_failed(item, outcome.error_message)
        else:
            record_failure(item, outcome.error_message, portal.retry_delay_minutes)

    def run_maintenance(self) -> int:
        """Delete diagnostic screenshots past the retention window."""
        try:
            return self.engine.cleanup_old_screenshots(settings.AUTOMATION_SCREENSHOT_RETENTION_DAYS)
        except Exception as e:
            logger.error(f"Screenshot cleanup failed: {e}", exc_info=True)
            return 0


def process_lead_manually(lead_id: int, priority: Optional[int] = None,
                          tenant_id: Optional[int] = None) -> QueueItem:
    """
    Operator "process this lead now": a forced admission with elevated priority.

    Raises:
        LeadNotFound: If the lead does not exist (or belongs to another tenant)
        PortalNotConfigured: If the tenant has no active portal configuration
        LeadBusy: If the lead's queue item is PROCESSING
    """
    if priority is None:
        priority = settings.AUTOMATION_MANUAL_PRIORITY

    leads = Lead.objects.filter(id=lead_id)
    if tenant_id is not None:
        leads = leads.filter(tenant_id=tenant_id)
    lead = leads.first()
    if lead is None:
        raise LeadNotFound(f"Lead {lead_id} not found")

    config = get_active_portal_config(lead.tenant_id)
    if config is None:
        raise PortalNotConfigured(
            'No active portal configuration found. Please configure the portal first.'
        )

    with transaction.atomic():
        item = QueueItem.objects.select_for_update().filter(lead=lead).first()
        if item is not None and item.status == QueueItem.Status.PROCESSING:
            raise LeadBusy(f"Lead {lead_id} is already being processed")

        if item is not None:
            requeue(item, priority, max_attempts=config.retry_attempts)
        else:
            item, _ = enqueue(lead, priority=priority, max_attempts=config.retry_attempts)

        if lead.status != Lead.Status.ENTRY_IN_PROGRESS:
            transition_lead(
                lead.id,
                [status for status in Lead.Status.values if status != Lead.Status.ENTRY_IN_PROGRESS],
                Lead.Status.ENTRY_IN_PROGRESS,
                reason='Manually queued for portal entry',
            )

    logger.info(f"Manually queued lead {lead_id} for processing (priority {priority})")
    return item
