"""
Append-only audit trail of portal submission attempts.
"""
import logging
from typing import Optional

from django.conf import settings
from django.utils import timezone

from leads.models import AutomationLog
from leads.services.mapping import redact_url

logger = logging.getLogger(__name__)


class AutomationLogClosed(Exception):
    """Raised when a completed automation log entry would be modified."""
    pass


def start_attempt(lead, portal_config, attempt_number: int,
                  constructed_url: Optional[str] = None) -> AutomationLog:
    """Open an IN_PROGRESS entry before the portal is contacted."""
    return AutomationLog.objects.create(
        lead=lead,
        portal_config=portal_config,
        attempt_number=attempt_number,
        status=AutomationLog.Status.IN_PROGRESS,
        constructed_url=redact_url(constructed_url, settings.AUTOMATION_REDACTED_PARAMS),
        queued_at=timezone.now(),
    )


def complete_attempt(
    entry: AutomationLog,
    success: bool,
    processing_time_ms: Optional[int] = None,
    portal_response_code: Optional[int] = None,
    portal_response_message: Optional[str] = None,
    error_message: Optional[str] = None,
    screenshot_path: Optional[str] = None,
    response_data: Optional[dict] = None,
) -> AutomationLog:
    """
    Close an entry with the attempt outcome. Entries are completed once.

    Raises:
        AutomationLogClosed: If the entry was already completed
    """
    updated = AutomationLog.objects.filter(id=entry.id, completed_at__isnull=True).update(
        status=AutomationLog.Status.SUCCESS if success else AutomationLog.Status.FAILED,
        success=success,
        processing_time_ms=processing_time_ms,
        portal_response_code=portal_response_code,
        portal_response_message=portal_response_message,
        error_message=error_message,
        screenshot_path=screenshot_path,
        response_data=response_data,
        completed_at=timezone.now(),
    )
    if not updated:
        raise AutomationLogClosed(f"Automation log {entry.id} is already completed")

    entry.refresh_from_db()
    logger.info(
        f"Automation log {entry.id}: lead {entry.lead_id} attempt #{entry.attempt_number} "
        f"{entry.status} in {processing_time_ms}ms"
    )
    return entry


def record_outcome(entry: AutomationLog, outcome) -> AutomationLog:
    """Close an entry from a SubmissionOutcome."""
    return complete_attempt(
        entry,
        success=outcome.success,
        processing_time_ms=outcome.duration_ms,
        portal_response_code=outcome.http_status,
        portal_response_message=outcome.response_message,
        error_message=outcome.error_message,
        screenshot_path=outcome.screenshot_path,
        response_data=outcome.response_data,
    )
