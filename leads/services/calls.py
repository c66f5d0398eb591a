"""
Voice-call outcome handling: the producer of CONFIRMED leads.

Provider events are parsed into a CallEvent, mapped onto the call state
vocabulary and applied to the CallRecord keyed by the provider call id.
Calls never move backwards and COMPLETED/FAILED are terminal, so webhook
redelivery leaves records, leads and status history unchanged.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from leads.models import CallRecord, Lead
from leads.services.lead_status import transition_lead

logger = logging.getLogger(__name__)

PROVIDER_STATUS_MAP = {
    'queued': CallRecord.Status.RINGING,
    'ringing': CallRecord.Status.RINGING,
    'in-progress': CallRecord.Status.ANSWERED,
    'completed': CallRecord.Status.COMPLETED,
    'ended': CallRecord.Status.COMPLETED,
    'failed': CallRecord.Status.FAILED,
    'busy': CallRecord.Status.FAILED,
    'no-answer': CallRecord.Status.FAILED,
    'canceled': CallRecord.Status.FAILED,
}

CALL_STATE_ORDER = {
    CallRecord.Status.INITIATED: 0,
    CallRecord.Status.RINGING: 1,
    CallRecord.Status.ANSWERED: 2,
    CallRecord.Status.COMPLETED: 3,
    CallRecord.Status.FAILED: 3,
}
TERMINAL_CALL_STATES = frozenset({CallRecord.Status.COMPLETED, CallRecord.Status.FAILED})

# Lead statuses a call outcome may still change
CALL_STAGE_STATUSES = (Lead.Status.NEW, Lead.Status.CALLING, Lead.Status.CALL_FAILED)


class InvalidCallEvent(Exception):
    """Raised when a call-outcome payload cannot be applied."""
    pass


@dataclass(frozen=True)
class CallEvent:
    call_id: str
    tenant_id: int
    lead_id: int
    status: str
    provider_status: Optional[str] = None
    transcript: Optional[str] = None
    recording_url: Optional[str] = None


def map_provider_status(provider_status: Optional[str]) -> str:
    """Map a provider call status onto the call state vocabulary."""
    normalized = (provider_status or '').strip().lower()
    if normalized.upper() in CallRecord.Status.values:
        return normalized.upper()
    return PROVIDER_STATUS_MAP.get(normalized, CallRecord.Status.INITIATED)


def detect_consent(transcript: Optional[str], keywords: Optional[Iterable[str]] = None) -> bool:
    """True if the transcript contains an affirmative consent phrase."""
    if not transcript:
        return False
    if keywords is None:
        keywords = settings.CALL_CONSENT_KEYWORDS
    text = transcript.lower()
    return any(keyword.lower() in text for keyword in keywords)


def _require_id(payload_name: str, value: Any) -> int:
    if isinstance(value, bool) or value in (None, ''):
        raise InvalidCallEvent(f"Missing {payload_name}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidCallEvent(f"{payload_name} must be an integer id, got {value!r}")


def _optional_str(value: Any) -> Optional[str]:
    if value in (None, ''):
        return None
    return str(value)


def parse_call_event(payload: Any) -> CallEvent:
    """
    Parse a webhook payload in either accepted format.

    Flat contract:
        {"callId", "tenantId", "leadId", "status", "transcript"?, "recordingRef"?}

    Provider envelope:
        {"message": {"type"}, "call": {"id", "status", "transcript",
         "recordingUrl", "metadata": {"leadId", "clientId"}}}

    Raises:
        InvalidCallEvent: If required fields are missing or malformed
    """
    if not isinstance(payload, dict) or not payload:
        raise InvalidCallEvent('Payload must be a non-empty JSON object')

    call = payload.get('call')
    if isinstance(call, dict):
        metadata = call.get('metadata') or {}
        if not isinstance(metadata, dict):
            raise InvalidCallEvent('call.metadata must be an object')
        call_id = call.get('id')
        tenant_id = metadata.get('clientId', metadata.get('tenantId'))
        lead_id = metadata.get('leadId')
        provider_status = call.get('status')
        transcript = call.get('transcript')
        recording_url = call.get('recordingUrl')
    else:
        call_id = payload.get('callId')
        tenant_id = payload.get('tenantId')
        lead_id = payload.get('leadId')
        provider_status = payload.get('status')
        transcript = payload.get('transcript')
        recording_url = payload.get('recordingRef')

    if not call_id:
        raise InvalidCallEvent('Missing call id')
    if not provider_status or not isinstance(provider_status, str):
        raise InvalidCallEvent('Missing call status')

    return CallEvent(
        call_id=str(call_id),
        tenant_id=_require_id('tenant id', tenant_id),
        lead_id=_require_id('lead id', lead_id),
        status=map_provider_status(provider_status),
        provider_status=provider_status,
        transcript=_optional_str(transcript),
        recording_url=_optional_str(recording_url),
    )


def apply_call_event(event: CallEvent) -> bool:
    """
    Apply a call event to its CallRecord and the owning lead.

    Returns:
        True if the event changed state, False if it was a repeat or stale

    Raises:
        InvalidCallEvent: If the lead does not exist for the tenant, or the
            call id is already bound to another lead
    """
    now = timezone.now()

    with transaction.atomic():
        lead = Lead.objects.filter(id=event.lead_id, tenant_id=event.tenant_id).first()
        if lead is None:
            raise InvalidCallEvent(f"Lead {event.lead_id} not found for tenant {event.tenant_id}")

        record, created = CallRecord.objects.get_or_create(
            call_id=event.call_id,
            defaults={
                'tenant_id': event.tenant_id,
                'lead_id': event.lead_id,
                'status': CallRecord.Status.INITIATED,
            },
        )
        record = CallRecord.objects.select_for_update().get(pk=record.pk)

        if record.lead_id != event.lead_id:
            raise InvalidCallEvent(f"Call {event.call_id} belongs to lead {record.lead_id}, not {event.lead_id}")

        if record.status in TERMINAL_CALL_STATES:
            logger.info(f"Call {event.call_id} already {record.status}, ignoring {event.status} event")
            return False
        if not created and CALL_STATE_ORDER[event.status] <= CALL_STATE_ORDER[record.status]:
            logger.info(f"Call {event.call_id}: stale {event.status} event (current {record.status}), ignored")
            return False

        consent = event.status == CallRecord.Status.COMPLETED and detect_consent(event.transcript)

        record.status = event.status
        record.provider_status = event.provider_status
        if event.transcript is not None:
            record.transcript = event.transcript
        if event.recording_url is not None:
            record.recording_url = event.recording_url
        record.tcpa_consent = consent
        if event.status in TERMINAL_CALL_STATES:
            record.ended_at = now
        record.save()

        logger.info(f"Call {event.call_id} for lead {lead.id}: {event.status}")
        _apply_lead_transition(lead, record, consent, now)

    return True


def _apply_lead_transition(lead: Lead, record: CallRecord, consent: bool, now) -> None:
    reason = f"Voice call {record.status.lower()}"
    notes = 'Call transcript available' if record.transcript else None

    if record.status in (CallRecord.Status.RINGING, CallRecord.Status.ANSWERED):
        transition_lead(
            lead.id,
            [Lead.Status.NEW, Lead.Status.CALL_FAILED],
            Lead.Status.CALLING,
            reason=reason,
            last_call_at=now,
        )
    elif record.status == CallRecord.Status.COMPLETED and consent:
        transition_lead(
            lead.id,
            CALL_STAGE_STATUSES,
            Lead.Status.CONFIRMED,
            reason=f"{reason} with consent",
            notes=notes,
            tcpa_consent=True,
            consent_recording_url=record.recording_url,
            last_call_at=now,
        )
    elif record.status == CallRecord.Status.COMPLETED:
        transition_lead(
            lead.id,
            [Lead.Status.NEW, Lead.Status.CALLING],
            Lead.Status.CALL_FAILED,
            reason=f"{reason} without consent",
            notes=notes,
            last_call_at=now,
        )
    elif record.status == CallRecord.Status.FAILED:
        transition_lead(
            lead.id,
            [Lead.Status.NEW, Lead.Status.CALLING],
            Lead.Status.CALL_FAILED,
            reason=f"{reason} ({record.provider_status})",
            last_call_at=now,
        )
