"""
Celery tasks for async call-outcome processing.
"""
import logging
from celery import shared_task

from leads.services.calls import InvalidCallEvent, apply_call_event, parse_call_event

logger = logging.getLogger(__name__)


@shared_task
def handle_call_event(payload: dict):
    """
    Apply a voice-call webhook payload.

    Workflow:
    1. Parse the payload (either webhook format)
    2. Apply it to the CallRecord and lead (idempotent per call id)

    Invalid payloads are logged and dropped; retrying them cannot help.

    Args:
        payload: Raw webhook JSON body

    Returns:
        True if the event changed state
    """
    try:
        event = parse_call_event(payload)
        applied = apply_call_event(event)
    except InvalidCallEvent as e:
        logger.error(f"Call event dropped: {e}")
        return False

    if applied:
        logger.info(f"Call event {event.call_id} ({event.status}) applied to lead {event.lead_id}")
    else:
        logger.info(f"Call event {event.call_id} ({event.status}) was a repeat, nothing changed")
    return applied
