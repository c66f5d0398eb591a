"""
Automation queue: admission, claiming, and success/retry/terminal transitions.

Coordination happens through row state only (unique lead reference,
conditional status updates), so several monitor processes can share a queue.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from leads.models import Lead, QueueItem
from leads.services.lead_status import transition_lead

logger = logging.getLogger(__name__)

# Bounded retries when another process claims the item we selected
CLAIM_CONTENTION_LIMIT = 5


def retry_delay_minutes(attempt_count: int, base_delay_minutes: int) -> int:
    """Exponential backoff: 2^attempt_count * base delay."""
    return (2 ** attempt_count) * base_delay_minutes


def enqueue(lead: Lead, priority: Optional[int] = None,
            max_attempts: Optional[int] = None) -> Tuple[QueueItem, bool]:
    """
    Add a lead to the queue. Idempotent: an existing item is returned unchanged.

    Returns:
        Tuple of (queue_item, created)
    """
    if priority is None:
        priority = settings.AUTOMATION_DEFAULT_PRIORITY
    if max_attempts is None:
        max_attempts = settings.AUTOMATION_DEFAULT_MAX_ATTEMPTS

    item, created = QueueItem.objects.get_or_create(
        lead=lead,
        defaults={
            'priority': priority,
            'max_attempts': max_attempts,
            'status': QueueItem.Status.QUEUED,
        },
    )
    if created:
        logger.info(f"Lead {lead.id} queued (priority {priority}, max attempts {max_attempts})")
    else:
        logger.warning(f"Lead {lead.id} already in queue as item {item.id} ({item.status})")
    return item, created


def next_eligible(now: Optional[datetime] = None) -> Optional[QueueItem]:
    """
    Lowest priority value first, FIFO within a priority; only items whose
    next attempt time is unset or already passed.
    """
    now = now or timezone.now()
    return (
        QueueItem.objects
        .filter(status=QueueItem.Status.QUEUED)
        .filter(Q(next_attempt_at__isnull=True) | Q(next_attempt_at__lte=now))
        .select_related('lead', 'lead__tenant')
        .order_by('priority', 'created_at', 'id')
        .first()
    )


def claim(item: QueueItem) -> bool:
    """Atomically move an item QUEUED -> PROCESSING; False if someone else got it."""
    updated = QueueItem.objects.filter(
        id=item.id,
        status=QueueItem.Status.QUEUED,
    ).update(status=QueueItem.Status.PROCESSING, updated_at=timezone.now())

    if updated:
        item.status = QueueItem.Status.PROCESSING
        return True
    return False


def claim_next(now: Optional[datetime] = None) -> Optional[QueueItem]:
    """Select and claim the next eligible item."""
    for _ in range(CLAIM_CONTENTION_LIMIT):
        item = next_eligible(now)
        if item is None:
            return None
        if claim(item):
            logger.info(f"Claimed queue item {item.id} for lead {item.lead_id}")
            return item
        logger.debug(f"Queue item {item.id} claimed elsewhere, selecting again")
    return None


def mark_completed(item: QueueItem) -> bool:
    """Success: item COMPLETED and lead ENTERED in one transaction."""
    with transaction.atomic():
        updated = QueueItem.objects.filter(
            id=item.id,
            status=QueueItem.Status.PROCESSING,
        ).update(
            status=QueueItem.Status.COMPLETED,
            last_error=None,
            next_attempt_at=None,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.warning(f"Queue item {item.id} was not PROCESSING, completion ignored")
            return False

        if not transition_lead(
            item.lead_id,
            [Lead.Status.ENTRY_IN_PROGRESS],
            Lead.Status.ENTERED,
            reason='Portal submission succeeded',
        ):
            logger.warning(f"Lead {item.lead_id} was not ENTRY_IN_PROGRESS when its entry completed")

    item.status = QueueItem.Status.COMPLETED
    return True


def mark_failed(item: QueueItem, error: Optional[str]) -> bool:
    """Terminal failure: item FAILED and lead ENTRY_FAILED, exactly once."""
    with transaction.atomic():
        updated = QueueItem.objects.filter(
            id=item.id,
            status=QueueItem.Status.PROCESSING,
        ).update(
            status=QueueItem.Status.FAILED,
            attempt_count=F('attempt_count') + 1,
            next_attempt_at=None,
            last_error=error,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.warning(f"Queue item {item.id} was not PROCESSING, failure ignored")
            return False

        transition_lead(
            item.lead_id,
            [Lead.Status.ENTRY_IN_PROGRESS],
            Lead.Status.ENTRY_FAILED,
            reason='Portal submission failed',
            notes=error,
        )

    item.status = QueueItem.Status.FAILED
    logger.error(f"Lead {item.lead_id} FAILED after {item.attempt_count + 1} attempts: {error}")
    return True


def record_failure(item: QueueItem, error: Optional[str], base_delay_minutes: int,
                   now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Apply the retry policy to a failed attempt.

    While attempt_count < max_attempts the item goes back to QUEUED with an
    exponential backoff; otherwise it fails terminally.

    max_attempts counts retries after the first attempt: with max_attempts=3
    and a 5 minute base, failures are retried after 5, 10 and 20 minutes and
    the fourth failure is terminal.

    Returns:
        The next attempt time, or None when the item failed terminally
    """
    if item.attempt_count >= item.max_attempts:
        mark_failed(item, error)
        return None

    now = now or timezone.now()
    delay = retry_delay_minutes(item.attempt_count, base_delay_minutes)
    next_attempt_at = now + timedelta(minutes=delay)

    updated = QueueItem.objects.filter(
        id=item.id,
        status=QueueItem.Status.PROCESSING,
    ).update(
        status=QueueItem.Status.QUEUED,
        attempt_count=item.attempt_count + 1,
        next_attempt_at=next_attempt_at,
        last_error=error,
        updated_at=now,
    )
    if not updated:
        logger.warning(f"Queue item {item.id} was not PROCESSING, retry not scheduled")
        return None

    item.status = QueueItem.Status.QUEUED
    item.attempt_count += 1
    item.next_attempt_at = next_attempt_at
    item.last_error = error
    logger.warning(
        f"Lead {item.lead_id}: retrying in {delay} minutes "
        f"(attempt {item.attempt_count}/{item.max_attempts})"
    )
    return next_attempt_at


def requeue(item: QueueItem, priority: int, max_attempts: Optional[int] = None) -> QueueItem:
    """Operator reset of an existing, not in-flight item."""
    item.status = QueueItem.Status.QUEUED
    item.priority = priority
    if max_attempts is not None:
        item.max_attempts = max_attempts
    item.attempt_count = 0
    item.next_attempt_at = None
    item.last_error = None
    item.save(update_fields=[
        'status', 'priority', 'max_attempts', 'attempt_count', 'next_attempt_at', 'last_error', 'updated_at'
    ])
    logger.info(f"Queue item {item.id} for lead {item.lead_id} re-queued with priority {priority}")
    return item


def release_stale_claims(older_than_minutes: int, now: Optional[datetime] = None) -> int:
    """Return PROCESSING items abandoned by a crashed worker to the queue."""
    now = now or timezone.now()
    cutoff = now - timedelta(minutes=older_than_minutes)
    released = QueueItem.objects.filter(
        status=QueueItem.Status.PROCESSING,
        updated_at__lt=cutoff,
    ).update(
        status=QueueItem.Status.QUEUED,
        last_error='Released stale processing claim',
        updated_at=now,
    )
    if released:
        logger.warning(f"Released {released} stale PROCESSING queue items")
    return released
