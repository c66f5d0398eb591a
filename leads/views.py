"""
API views for Portal Gateway.
"""
import logging
import uuid
from rest_framework.exceptions import ParseError
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from leads.models import Lead, QueueItem
from leads.services.calls import InvalidCallEvent, parse_call_event
from leads.services.monitor import LeadBusy, LeadNotFound, PortalNotConfigured, process_lead_manually
from leads.services.stats import DEFAULT_TIMEFRAME, get_stats
from leads.tasks import handle_call_event

logger = logging.getLogger(__name__)

RECENT_LOG_LIMIT = 5


def _error(message, correlation_id, http_status):
    return Response({'error': message, 'correlation_id': correlation_id}, status=http_status)


def _optional_int(value, name):
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")


def _isoformat(value):
    return value.isoformat() if value else None


@method_decorator(csrf_exempt, name='dispatch')
class CallWebhookView(APIView):
    """
    Webhook endpoint for voice-call provider events.

    POST /webhooks/calls/
    - Accepts the flat contract or the provider envelope
    - Validates the payload shape
    - Enqueues async processing task
    - Returns 200 OK with call_id and correlation_id
    """

    def post(self, request):
        """
        Handle an incoming call event.

        Returns:
            200 OK: Event accepted and queued for processing
            400 Bad Request: Malformed JSON or invalid payload
            500 Internal Server Error: Unexpected error
        """
        correlation_id = str(uuid.uuid4())

        try:
            payload = request.data

            if not payload:
                logger.warning(f"Empty call payload received, correlation_id={correlation_id}")
                return _error('Empty payload', correlation_id, status.HTTP_400_BAD_REQUEST)

            event = parse_call_event(payload)
            handle_call_event.delay(payload)

            logger.info(
                f"Call event {event.call_id} ({event.status}) for lead {event.lead_id} enqueued, "
                f"correlation_id={correlation_id}"
            )

            return Response(
                {
                    'status': 'accepted',
                    'call_id': event.call_id,
                    'correlation_id': correlation_id
                },
                status=status.HTTP_200_OK
            )

        except ParseError as e:
            logger.warning(f"Malformed JSON payload: {e}, correlation_id={correlation_id}")
            return _error('Malformed JSON', correlation_id, status.HTTP_400_BAD_REQUEST)
        except InvalidCallEvent as e:
            logger.warning(f"Invalid call event: {e}, correlation_id={correlation_id}")
            return _error(str(e), correlation_id, status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.error(
                f"Error processing call webhook: {e}, correlation_id={correlation_id}",
                exc_info=True
            )
            return _error('Internal server error', correlation_id, status.HTTP_500_INTERNAL_SERVER_ERROR)


@method_decorator(csrf_exempt, name='dispatch')
class ProcessLeadView(APIView):
    """
    Operator "process this lead now".

    POST /automation/leads/<lead_id>/process/
    Body (optional): {"priority": 1, "tenant": <tenant id>}
    """

    def post(self, request, lead_id):
        correlation_id = str(uuid.uuid4())

        try:
            data = request.data or {}
            if not isinstance(data, dict):
                return _error('Request body must be a JSON object', correlation_id, status.HTTP_400_BAD_REQUEST)
            priority = _optional_int(data.get('priority'), 'priority')
            tenant_id = _optional_int(data.get('tenant'), 'tenant')

            item = process_lead_manually(lead_id, priority=priority, tenant_id=tenant_id)

            return Response(
                {
                    'status': 'queued',
                    'lead_id': lead_id,
                    'queue_item_id': item.id,
                    'priority': item.priority,
                    'correlation_id': correlation_id
                },
                status=status.HTTP_200_OK
            )

        except ParseError as e:
            logger.warning(f"Malformed JSON payload: {e}, correlation_id={correlation_id}")
            return _error('Malformed JSON', correlation_id, status.HTTP_400_BAD_REQUEST)
        except ValueError as e:
            return _error(str(e), correlation_id, status.HTTP_400_BAD_REQUEST)
        except LeadNotFound as e:
            logger.warning(f"{e}, correlation_id={correlation_id}")
            return _error('Lead not found', correlation_id, status.HTTP_404_NOT_FOUND)
        except PortalNotConfigured as e:
            logger.warning(f"Lead {lead_id}: {e}, correlation_id={correlation_id}")
            return _error(str(e), correlation_id, status.HTTP_400_BAD_REQUEST)
        except LeadBusy as e:
            logger.warning(f"{e}, correlation_id={correlation_id}")
            return _error(str(e), correlation_id, status.HTTP_409_CONFLICT)
        except Exception as e:
            logger.error(
                f"Error queueing lead {lead_id}: {e}, correlation_id={correlation_id}",
                exc_info=True
            )
            return _error('Internal server error', correlation_id, status.HTTP_500_INTERNAL_SERVER_ERROR)


class LeadAutomationStatusView(APIView):
    """
    GET /automation/leads/<lead_id>/?tenant=<tenant id>

    Lead summary, its queue item and the most recent automation attempts.
    """

    def get(self, request, lead_id):
        correlation_id = str(uuid.uuid4())

        try:
            tenant_id = _optional_int(request.query_params.get('tenant'), 'tenant')
        except ValueError as e:
            return _error(str(e), correlation_id, status.HTTP_400_BAD_REQUEST)

        leads = Lead.objects.filter(id=lead_id)
        if tenant_id is not None:
            leads = leads.filter(tenant_id=tenant_id)
        lead = leads.first()
        if lead is None:
            return _error('Lead not found', correlation_id, status.HTTP_404_NOT_FOUND)

        queue_item = QueueItem.objects.filter(lead=lead).first()
        logs = lead.automation_logs.order_by('-queued_at', '-id')[:RECENT_LOG_LIMIT]

        return Response(
            {
                'lead': {
                    'id': lead.id,
                    'tenant_id': lead.tenant_id,
                    'first_name': lead.first_name,
                    'last_name': lead.last_name,
                    'email': lead.email,
                    'status': lead.status,
                },
                'queue_item': {
                    'id': queue_item.id,
                    'status': queue_item.status,
                    'priority': queue_item.priority,
                    'attempt_count': queue_item.attempt_count,
                    'max_attempts': queue_item.max_attempts,
                    'next_attempt_at': _isoformat(queue_item.next_attempt_at),
                    'last_error': queue_item.last_error,
                } if queue_item else None,
                'automation_logs': [
                    {
                        'id': log.id,
                        'attempt_number': log.attempt_number,
                        'status': log.status,
                        'success': log.success,
                        'constructed_url': log.constructed_url,
                        'portal_response_code': log.portal_response_code,
                        'portal_response_message': log.portal_response_message,
                        'processing_time_ms': log.processing_time_ms,
                        'error_message': log.error_message,
                        'screenshot_path': log.screenshot_path,
                        'queued_at': _isoformat(log.queued_at),
                        'completed_at': _isoformat(log.completed_at),
                    }
                    for log in logs
                ],
            },
            status=status.HTTP_200_OK
        )


class AutomationStatsView(APIView):
    """
    GET /automation/stats/?timeframe=1h|24h|7d|30d&tenant=<tenant id>
    """

    def get(self, request):
        correlation_id = str(uuid.uuid4())

        try:
            tenant_id = _optional_int(request.query_params.get('tenant'), 'tenant')
        except ValueError as e:
            return _error(str(e), correlation_id, status.HTTP_400_BAD_REQUEST)

        timeframe = request.query_params.get('timeframe') or DEFAULT_TIMEFRAME

        try:
            stats = get_stats(tenant_id=tenant_id, timeframe=timeframe)
        except Exception as e:
            logger.error(
                f"Error computing automation stats: {e}, correlation_id={correlation_id}",
                exc_info=True
            )
            return _error('Internal server error', correlation_id, status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(stats, status=status.HTTP_200_OK)
