"""
Queue and processing statistics for operators.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from django.db.models import Avg, Count
from django.utils import timezone

from leads.models import AutomationLog, Lead, QueueItem

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    '1h': timedelta(hours=1),
    '24h': timedelta(days=1),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
}
DEFAULT_TIMEFRAME = '24h'

AUTOMATION_LEAD_STATUSES = (
    Lead.Status.CONFIRMED,
    Lead.Status.ENTRY_IN_PROGRESS,
    Lead.Status.ENTERED,
    Lead.Status.ENTRY_FAILED,
)
RECENT_ACTIVITY_LIMIT = 20


def window_start(timeframe: str, now: Optional[datetime] = None) -> datetime:
    """Start of the rolling window; unknown timeframes fall back to 24h."""
    now = now or timezone.now()
    return now - TIMEFRAMES.get(timeframe, TIMEFRAMES[DEFAULT_TIMEFRAME])


def get_stats(tenant_id: Optional[int] = None, timeframe: str = DEFAULT_TIMEFRAME,
              now: Optional[datetime] = None) -> dict:
    """
    Summarize the automation pipeline.

    Args:
        tenant_id: Restrict to one tenant (all tenants when None)
        timeframe: One of TIMEFRAMES
        now: Reference time (defaults to the current time)

    Returns:
        Dict with summary, status_distribution, recent_activity and timeframe
    """
    if timeframe not in TIMEFRAMES:
        logger.debug(f"Unknown stats timeframe {timeframe!r}, using {DEFAULT_TIMEFRAME}")
        timeframe = DEFAULT_TIMEFRAME
    since = window_start(timeframe, now)

    queue_items = QueueItem.objects.all()
    leads = Lead.objects.filter(status__in=AUTOMATION_LEAD_STATUSES)
    logs = AutomationLog.objects.filter(queued_at__gte=since)
    if tenant_id is not None:
        queue_items = queue_items.filter(lead__tenant_id=tenant_id)
        leads = leads.filter(tenant_id=tenant_id)
        logs = logs.filter(lead__tenant_id=tenant_id)

    queue_counts = {
        row['status']: row['count']
        for row in queue_items.values('status').annotate(count=Count('id'))
    }
    status_distribution = {
        row['status']: row['count']
        for row in leads.values('status').annotate(count=Count('id'))
    }

    completed = logs.filter(status=AutomationLog.Status.SUCCESS).count()
    failed = logs.filter(status=AutomationLog.Status.FAILED).count()
    total_processed = completed + failed
    success_rate = round(completed / total_processed * 100, 2) if total_processed else 0.0

    avg_processing_time = logs.filter(processing_time_ms__isnull=False).aggregate(
        avg=Avg('processing_time_ms')
    )['avg']

    recent_activity = [
        {
            'id': log.id,
            'lead_id': log.lead_id,
            'lead_name': f"{log.lead.first_name} {log.lead.last_name}".strip(),
            'lead_status': log.lead.status,
            'status': log.status,
            'success': log.success,
            'attempt_number': log.attempt_number,
            'processing_time_ms': log.processing_time_ms,
            'portal_response_message': log.portal_response_message,
            'error_message': log.error_message,
            'queued_at': log.queued_at.isoformat(),
            'completed_at': log.completed_at.isoformat() if log.completed_at else None,
        }
        for log in logs.select_related('lead').order_by('-queued_at', '-id')[:RECENT_ACTIVITY_LIMIT]
    ]

    return {
        'summary': {
            'queued': queue_counts.get(QueueItem.Status.QUEUED, 0),
            'processing': queue_counts.get(QueueItem.Status.PROCESSING, 0),
            'completed_items': queue_counts.get(QueueItem.Status.COMPLETED, 0),
            'failed_items': queue_counts.get(QueueItem.Status.FAILED, 0),
            'completed': completed,
            'failed': failed,
            'total_processed': total_processed,
            'success_rate': success_rate,
            'avg_processing_time_ms': round(avg_processing_time) if avg_processing_time is not None else 0,
        },
        'status_distribution': status_distribution,
        'recent_activity': recent_activity,
        'timeframe': timeframe,
    }
