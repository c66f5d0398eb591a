"""
Tests for the automation queue state machine.
"""
from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from leads.models import Lead, LeadStatusUpdate, QueueItem
from leads.services.queue import (
    claim,
    claim_next,
    enqueue,
    mark_completed,
    mark_failed,
    next_eligible,
    record_failure,
    release_stale_claims,
    requeue,
    retry_delay_minutes,
)


@pytest.fixture
def in_progress_lead(make_lead):
    return make_lead(status=Lead.Status.ENTRY_IN_PROGRESS)


class TestRetryDelay:

    def test_backoff_sequence(self):
        assert [retry_delay_minutes(n, 5) for n in range(4)] == [5, 10, 20, 40]


@pytest.mark.django_db
class TestEnqueue:

    def test_creates_item(self, in_progress_lead):
        item, created = enqueue(in_progress_lead, priority=3, max_attempts=4)

        assert created is True
        assert item.status == QueueItem.Status.QUEUED
        assert item.priority == 3
        assert item.max_attempts == 4
        assert item.attempt_count == 0
        assert item.next_attempt_at is None

    def test_defaults_from_settings(self, in_progress_lead, settings):
        settings.AUTOMATION_DEFAULT_PRIORITY = 7
        settings.AUTOMATION_DEFAULT_MAX_ATTEMPTS = 2

        item, _ = enqueue(in_progress_lead)

        assert item.priority == 7
        assert item.max_attempts == 2

    def test_idempotent(self, in_progress_lead):
        first, _ = enqueue(in_progress_lead, priority=5)
        second, created = enqueue(in_progress_lead, priority=1)

        assert created is False
        assert second.id == first.id
        assert second.priority == 5
        assert QueueItem.objects.filter(lead=in_progress_lead).count() == 1

    def test_unique_per_lead(self, in_progress_lead):
        QueueItem.objects.create(lead=in_progress_lead)
        with pytest.raises(IntegrityError), transaction.atomic():
            QueueItem.objects.create(lead=in_progress_lead)


@pytest.mark.django_db
class TestSelection:

    def test_lowest_priority_value_first(self, make_lead):
        low, _ = enqueue(make_lead(), priority=5)
        high, _ = enqueue(make_lead(), priority=1)

        assert next_eligible() == high

    def test_fifo_within_priority(self, make_lead):
        first, _ = enqueue(make_lead(), priority=5)
        enqueue(make_lead(), priority=5)

        assert next_eligible() == first

    def test_future_items_are_not_eligible(self, make_lead):
        now = timezone.now()
        waiting, _ = enqueue(make_lead(), priority=1)
        QueueItem.objects.filter(id=waiting.id).update(next_attempt_at=now + timedelta(minutes=5))
        ready, _ = enqueue(make_lead(), priority=9)

        assert next_eligible(now) == ready
        assert next_eligible(now + timedelta(minutes=6)) == waiting

    def test_only_queued_items(self, make_lead):
        item, _ = enqueue(make_lead())
        QueueItem.objects.filter(id=item.id).update(status=QueueItem.Status.FAILED)

        assert next_eligible() is None
        assert claim_next() is None


@pytest.mark.django_db
class TestClaim:

    def test_claim_once(self, in_progress_lead):
        item, _ = enqueue(in_progress_lead)
        stale_copy = QueueItem.objects.get(id=item.id)

        assert claim(item) is True
        assert claim(stale_copy) is False
        assert QueueItem.objects.get(id=item.id).status == QueueItem.Status.PROCESSING

    def test_claim_next(self, in_progress_lead):
        item, _ = enqueue(in_progress_lead)

        claimed = claim_next()

        assert claimed.id == item.id
        assert claimed.status == QueueItem.Status.PROCESSING
        assert claim_next() is None


@pytest.mark.django_db
class TestTransitions:

    def test_success(self, in_progress_lead):
        item, _ = enqueue(in_progress_lead)
        claim(item)

        assert mark_completed(item) is True

        item.refresh_from_db()
        in_progress_lead.refresh_from_db()
        assert item.status == QueueItem.Status.COMPLETED
        assert in_progress_lead.status == Lead.Status.ENTERED
        assert LeadStatusUpdate.objects.filter(
            lead=in_progress_lead, to_status=Lead.Status.ENTERED
        ).count() == 1

    def test_completion_requires_claim(self, in_progress_lead):
        item, _ = enqueue(in_progress_lead)

        assert mark_completed(item) is False
        in_progress_lead.refresh_from_db()
        assert in_progress_lead.status == Lead.Status.ENTRY_IN_PROGRESS

    def test_three_retries_then_failed(self, in_progress_lead):
        """maxAttempts=3, base 5 minutes: retries at 5, 10, 20 minutes, then FAILED."""
        item, _ = enqueue(in_progress_lead, max_attempts=3)
        now = timezone.now()
        delays = []

        for _ in range(3):
            assert claim(item) is True
            next_attempt_at = record_failure(item, 'Portal timeout', 5, now=now)
            delays.append(round((next_attempt_at - now).total_seconds() / 60))
            item.refresh_from_db()
            assert item.status == QueueItem.Status.QUEUED
            assert item.last_error == 'Portal timeout'

        assert delays == [5, 10, 20]
        assert item.attempt_count == 3

        assert claim(item) is True
        assert record_failure(item, 'Portal timeout', 5, now=now) is None

        item.refresh_from_db()
        in_progress_lead.refresh_from_db()
        assert item.status == QueueItem.Status.FAILED
        assert item.next_attempt_at is None
        assert in_progress_lead.status == Lead.Status.ENTRY_FAILED
        assert LeadStatusUpdate.objects.filter(
            lead=in_progress_lead, to_status=Lead.Status.ENTRY_FAILED
        ).count() == 1

        # Terminal: nothing further is scheduled or claimable
        assert claim(item) is False
        assert record_failure(item, 'again', 5, now=now) is None
        assert LeadStatusUpdate.objects.filter(
            lead=in_progress_lead, to_status=Lead.Status.ENTRY_FAILED
        ).count() == 1

    def test_mark_failed_is_terminal_once(self, in_progress_lead):
        item, _ = enqueue(in_progress_lead)
        claim(item)

        assert mark_failed(item, 'Portal returned error status: 400') is True
        assert mark_failed(item, 'again') is False

        item.refresh_from_db()
        assert item.status == QueueItem.Status.FAILED
        assert item.last_error == 'Portal returned error status: 400'

    def test_requeue_resets_item(self, in_progress_lead):
        item, _ = enqueue(in_progress_lead, max_attempts=3)
        claim(item)
        mark_failed(item, 'boom')
        item.refresh_from_db()

        requeue(item, priority=1, max_attempts=5)

        item.refresh_from_db()
        assert item.status == QueueItem.Status.QUEUED
        assert item.priority == 1
        assert item.max_attempts == 5
        assert item.attempt_count == 0
        assert item.last_error is None
        assert item.next_attempt_at is None


@pytest.mark.django_db
class TestStaleClaims:

    def test_old_processing_items_are_released(self, make_lead):
        now = timezone.now()
        stale, _ = enqueue(make_lead())
        fresh, _ = enqueue(make_lead())
        QueueItem.objects.filter(id=stale.id).update(
            status=QueueItem.Status.PROCESSING, updated_at=now - timedelta(minutes=30)
        )
        QueueItem.objects.filter(id=fresh.id).update(
            status=QueueItem.Status.PROCESSING, updated_at=now - timedelta(minutes=1)
        )

        assert release_stale_claims(15, now=now) == 1

        assert QueueItem.objects.get(id=stale.id).status == QueueItem.Status.QUEUED
        assert QueueItem.objects.get(id=fresh.id).status == QueueItem.Status.PROCESSING
