from __future__ import annotations

from ..models import Opportunity, TimeSlot, TimeSlotStatus

TERMINAL_STATUSES = frozenset({TimeSlotStatus.CLOSED, TimeSlotStatus.CANCELLED})


def derive_status(
    current: TimeSlotStatus,
    *,
    applied_count: int,
    default_capacity: int,
    end_month: str,
    current_month: str,
) -> TimeSlotStatus:
    """
    Status implied by counts and the calendar.

    CLOSED and CANCELLED are never left automatically. An OPEN or FILLED slot
    whose last month is behind ``current_month`` closes; otherwise it is FILLED
    while ``applied_count`` has reached the default capacity and OPEN below it.
    """
    if current in TERMINAL_STATUSES:
        return current
    if end_month < current_month:
        return TimeSlotStatus.CLOSED
    if applied_count >= default_capacity:
        return TimeSlotStatus.FILLED
    return TimeSlotStatus.OPEN


def derive_slot(slot: TimeSlot, *, current_month: str) -> bool:
    """Apply :func:`derive_status` to ``slot`` in place. Returns True when the status changed."""
    new_status = derive_status(
        slot.status or TimeSlotStatus.OPEN,
        applied_count=slot.applied_count or 0,
        default_capacity=slot.default_capacity,
        end_month=slot.end_month,
        current_month=current_month,
    )
    changed = new_status != slot.status
    slot.status = new_status
    return changed


def derive_opportunity(opportunity: Opportunity) -> None:
    opportunity.has_time_slots = len(opportunity.time_slots) > 0
