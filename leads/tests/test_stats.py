"""
Tests for operator statistics.
"""
from datetime import timedelta

import pytest
from django.utils import timezone

from leads.models import AutomationLog, Lead, QueueItem
from leads.services.stats import get_stats, window_start


def test_window_start_falls_back_to_a_day():
    now = timezone.now()
    assert window_start('7d', now) == now - timedelta(days=7)
    assert window_start('bogus', now) == now - timedelta(days=1)


@pytest.mark.django_db
class TestGetStats:

    def log(self, lead, config, status, processing_time_ms=None, age=timedelta(minutes=5)):
        return AutomationLog.objects.create(
            lead=lead,
            portal_config=config,
            attempt_number=1,
            status=status,
            success=status == AutomationLog.Status.SUCCESS,
            processing_time_ms=processing_time_ms,
            queued_at=timezone.now() - age,
        )

    def test_empty(self, db):
        stats = get_stats()

        assert stats['summary']['total_processed'] == 0
        assert stats['summary']['success_rate'] == 0.0
        assert stats['summary']['avg_processing_time_ms'] == 0
        assert stats['recent_activity'] == []
        assert stats['timeframe'] == '24h'

    def test_summary(self, make_lead, portal_config):
        entered = make_lead(status=Lead.Status.ENTERED)
        failed = make_lead(first_name='John', status=Lead.Status.ENTRY_FAILED)
        waiting = make_lead(first_name='Ann', status=Lead.Status.CONFIRMED)
        make_lead(first_name='Bob')
        QueueItem.objects.create(lead=entered, status=QueueItem.Status.COMPLETED)
        QueueItem.objects.create(lead=failed, status=QueueItem.Status.FAILED)
        QueueItem.objects.create(lead=waiting)

        self.log(entered, portal_config, AutomationLog.Status.SUCCESS, 1000)
        self.log(failed, portal_config, AutomationLog.Status.FAILED, 3000)
        self.log(failed, portal_config, AutomationLog.Status.FAILED, 2000)
        self.log(waiting, portal_config, AutomationLog.Status.IN_PROGRESS)

        stats = get_stats()
        summary = stats['summary']

        assert summary['queued'] == 1
        assert summary['completed_items'] == 1
        assert summary['failed_items'] == 1
        assert summary['completed'] == 1
        assert summary['failed'] == 2
        assert summary['total_processed'] == 3
        assert summary['success_rate'] == 33.33
        assert summary['avg_processing_time_ms'] == 2000
        assert stats['status_distribution'] == {
            Lead.Status.ENTERED: 1,
            Lead.Status.ENTRY_FAILED: 1,
            Lead.Status.CONFIRMED: 1,
        }
        assert len(stats['recent_activity']) == 4
        assert stats['recent_activity'][0]['lead_name'] == 'Ann Doe'

    def test_timeframe_excludes_old_attempts(self, jane_lead, portal_config):
        self.log(jane_lead, portal_config, AutomationLog.Status.SUCCESS, age=timedelta(hours=2))

        assert get_stats(timeframe='1h')['summary']['completed'] == 0
        assert get_stats(timeframe='24h')['summary']['completed'] == 1

    def test_tenant_filter(self, jane_lead, portal_config, other_tenant):
        self.log(jane_lead, portal_config, AutomationLog.Status.SUCCESS, 500)

        assert get_stats(tenant_id=jane_lead.tenant_id)['summary']['completed'] == 1
        assert get_stats(tenant_id=other_tenant.id)['summary']['completed'] == 0
