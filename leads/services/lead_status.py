"""
Conditional lead status transitions with history.
"""
import logging
from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone

from leads.models import Lead, LeadStatusUpdate

logger = logging.getLogger(__name__)


def transition_lead(
    lead_id: int,
    from_statuses: Iterable[str],
    to_status: str,
    reason: str,
    notes: Optional[str] = None,
    **fields,
) -> bool:
    """
    Move a lead to `to_status` only if it is currently in one of `from_statuses`.

    The update is conditional on the status that was read, so two callers
    racing for the same lead cannot both win. A LeadStatusUpdate row is
    written only when the transition actually happened.

    Args:
        lead_id: ID of the Lead
        from_statuses: Statuses the lead may currently be in
        to_status: Target status
        reason: Short reason stored in the history row
        notes: Optional free-text notes
        **fields: Extra Lead fields to set together with the status

    Returns:
        True if the lead was transitioned
    """
    allowed = set(from_statuses)

    with transaction.atomic():
        current = Lead.objects.filter(id=lead_id).values_list('status', flat=True).first()
        if current is None or current not in allowed:
            logger.debug(
                f"Lead {lead_id}: transition to {to_status} skipped "
                f"(status {current}, expected one of {sorted(allowed)})"
            )
            return False

        updated = Lead.objects.filter(id=lead_id, status=current).update(
            status=to_status,
            updated_at=timezone.now(),
            **fields,
        )
        if not updated:
            logger.debug(f"Lead {lead_id}: lost race transitioning {current} -> {to_status}")
            return False

        LeadStatusUpdate.objects.create(
            lead_id=lead_id,
            from_status=current,
            to_status=to_status,
            reason=reason,
            notes=notes,
        )

    logger.info(f"Lead {lead_id}: {current} -> {to_status} ({reason})")
    return True
