"""
Tests for the call-outcome state machine.
"""
import pytest

from leads.models import CallRecord, Lead, LeadStatusUpdate
from leads.services.calls import (
    CallEvent,
    InvalidCallEvent,
    apply_call_event,
    detect_consent,
    map_provider_status,
    parse_call_event,
)

CONSENT_TRANSCRIPT = 'Agent: May we enroll you? Caller: Yes, I agree to be contacted.'


def event(lead, status, call_id='call-1', **kwargs):
    return CallEvent(call_id=call_id, tenant_id=lead.tenant_id, lead_id=lead.id, status=status, **kwargs)


class TestMapProviderStatus:

    @pytest.mark.parametrize('provider, expected', [
        ('queued', 'RINGING'),
        ('ringing', 'RINGING'),
        ('in-progress', 'ANSWERED'),
        ('completed', 'COMPLETED'),
        ('ended', 'COMPLETED'),
        ('failed', 'FAILED'),
        ('busy', 'FAILED'),
        ('no-answer', 'FAILED'),
        ('canceled', 'FAILED'),
        ('Completed', 'COMPLETED'),
        ('ANSWERED', 'ANSWERED'),
        ('something-new', 'INITIATED'),
        (None, 'INITIATED'),
    ])
    def test_mapping(self, provider, expected):
        assert map_provider_status(provider) == expected


class TestDetectConsent:

    def test_affirmative_phrase(self):
        assert detect_consent(CONSENT_TRANSCRIPT) is True

    def test_case_insensitive(self):
        assert detect_consent('YES, I CONSENT') is True

    def test_no_consent(self):
        assert detect_consent('Caller: no thanks, please remove me') is False
        assert detect_consent(None) is False
        assert detect_consent('') is False

    def test_custom_keywords(self):
        assert detect_consent('ja, gerne', keywords=['ja, gerne']) is True


class TestParseCallEvent:

    def test_flat_contract(self):
        parsed = parse_call_event({
            'callId': 'c-1',
            'tenantId': 3,
            'leadId': '17',
            'status': 'completed',
            'transcript': 'hello',
            'recordingRef': 'https://calls.example.com/c-1.mp3',
        })

        assert parsed == CallEvent(
            call_id='c-1',
            tenant_id=3,
            lead_id=17,
            status='COMPLETED',
            provider_status='completed',
            transcript='hello',
            recording_url='https://calls.example.com/c-1.mp3',
        )

    def test_provider_envelope(self):
        parsed = parse_call_event({
            'message': {'type': 'status-update'},
            'call': {
                'id': 'vapi-9',
                'status': 'in-progress',
                'metadata': {'leadId': 5, 'clientId': 2},
            },
        })

        assert parsed.call_id == 'vapi-9'
        assert parsed.tenant_id == 2
        assert parsed.lead_id == 5
        assert parsed.status == 'ANSWERED'
        assert parsed.transcript is None

    @pytest.mark.parametrize('payload', [
        {},
        [],
        'completed',
        {'tenantId': 1, 'leadId': 1, 'status': 'completed'},
        {'callId': 'c', 'leadId': 1, 'status': 'completed'},
        {'callId': 'c', 'tenantId': 1, 'leadId': 'abc', 'status': 'completed'},
        {'callId': 'c', 'tenantId': 1, 'leadId': 1},
        {'call': {'id': 'c', 'status': 'ended', 'metadata': 'x'}},
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidCallEvent):
            parse_call_event(payload)


@pytest.mark.django_db
class TestApplyCallEvent:

    def test_ringing_moves_lead_to_calling(self, jane_lead):
        assert apply_call_event(event(jane_lead, 'RINGING')) is True

        jane_lead.refresh_from_db()
        record = CallRecord.objects.get(call_id='call-1')
        assert record.status == CallRecord.Status.RINGING
        assert jane_lead.status == Lead.Status.CALLING
        assert jane_lead.last_call_at is not None

    def test_completed_with_consent_confirms_lead(self, jane_lead):
        apply_call_event(event(jane_lead, 'RINGING'))
        apply_call_event(event(
            jane_lead, 'COMPLETED',
            transcript=CONSENT_TRANSCRIPT,
            recording_url='https://calls.example.com/call-1.mp3',
        ))

        jane_lead.refresh_from_db()
        record = CallRecord.objects.get(call_id='call-1')
        assert jane_lead.status == Lead.Status.CONFIRMED
        assert jane_lead.tcpa_consent is True
        assert jane_lead.consent_recording_url == 'https://calls.example.com/call-1.mp3'
        assert record.tcpa_consent is True
        assert record.ended_at is not None

    def test_completed_without_consent_fails_call(self, jane_lead):
        apply_call_event(event(jane_lead, 'COMPLETED', transcript='Caller: not interested'))

        jane_lead.refresh_from_db()
        assert jane_lead.status == Lead.Status.CALL_FAILED
        assert jane_lead.tcpa_consent is False

    def test_failed_call(self, jane_lead):
        apply_call_event(event(jane_lead, 'RINGING'))
        apply_call_event(event(jane_lead, 'FAILED', provider_status='busy'))

        jane_lead.refresh_from_db()
        assert jane_lead.status == Lead.Status.CALL_FAILED

    def test_redelivery_is_idempotent(self, jane_lead):
        completed = event(jane_lead, 'COMPLETED', transcript=CONSENT_TRANSCRIPT)

        assert apply_call_event(completed) is True
        history = LeadStatusUpdate.objects.filter(lead=jane_lead).count()

        assert apply_call_event(completed) is False
        assert apply_call_event(completed) is False

        jane_lead.refresh_from_db()
        assert jane_lead.status == Lead.Status.CONFIRMED
        assert CallRecord.objects.filter(call_id='call-1').count() == 1
        assert LeadStatusUpdate.objects.filter(lead=jane_lead).count() == history

    def test_calls_never_move_backwards(self, jane_lead):
        apply_call_event(event(jane_lead, 'ANSWERED'))

        assert apply_call_event(event(jane_lead, 'RINGING')) is False
        assert CallRecord.objects.get(call_id='call-1').status == CallRecord.Status.ANSWERED

    def test_terminal_call_ignores_later_events(self, jane_lead):
        apply_call_event(event(jane_lead, 'FAILED'))

        assert apply_call_event(event(jane_lead, 'COMPLETED', transcript=CONSENT_TRANSCRIPT)) is False
        jane_lead.refresh_from_db()
        assert jane_lead.status == Lead.Status.CALL_FAILED

    def test_new_call_after_failed_call_can_confirm(self, jane_lead):
        apply_call_event(event(jane_lead, 'FAILED', call_id='first'))
        apply_call_event(event(jane_lead, 'RINGING', call_id='second'))
        apply_call_event(event(jane_lead, 'COMPLETED', call_id='second', transcript=CONSENT_TRANSCRIPT))

        jane_lead.refresh_from_db()
        assert jane_lead.status == Lead.Status.CONFIRMED

    def test_call_does_not_touch_leads_past_confirmation(self, make_lead):
        lead = make_lead(status=Lead.Status.ENTERED)

        apply_call_event(event(lead, 'COMPLETED', transcript='not interested'))

        lead.refresh_from_db()
        assert lead.status == Lead.Status.ENTERED

    def test_unknown_lead(self, jane_lead, other_tenant):
        with pytest.raises(InvalidCallEvent):
            apply_call_event(CallEvent('c', other_tenant.id, jane_lead.id, 'RINGING'))
        assert not CallRecord.objects.exists()

    def test_call_id_bound_to_one_lead(self, jane_lead, make_lead):
        apply_call_event(event(jane_lead, 'RINGING'))
        other = make_lead(first_name='John')

        with pytest.raises(InvalidCallEvent):
            apply_call_event(event(other, 'ANSWERED'))
