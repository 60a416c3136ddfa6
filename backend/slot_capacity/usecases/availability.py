from typing import Optional, Sequence

from ..domain.availability import (
    MonthAvailability,
    MonthSelection,
    aggregate_availability,
    check_month_selection,
    slot_availability,
)
from ..domain.errors import NotFoundError, ValidationError
from ..domain.months import month_range, parse_month
from ..domain.repositories import DateCapacityRepository, OpportunityRepository, TimeSlotRepository
from ..models import TimeSlotStatus

# Upper bound on a single calendar query.
MAX_QUERY_MONTHS = 36


def _months(start_month: str, end_month: str) -> list[str]:
    try:
        parse_month(start_month)
        parse_month(end_month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if start_month > end_month:
        raise ValidationError("end_month must not be earlier than start_month")
    months = month_range(start_month, end_month)
    if len(months) > MAX_QUERY_MONTHS:
        raise ValidationError(f"query range may span at most {MAX_QUERY_MONTHS} months")
    return months


async def query_availability(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    start_month: str,
    end_month: str,
    time_slot_id: Optional[int] = None,
) -> list[MonthAvailability]:
    """
    One entry per month in ``[start_month, end_month]``.

    With ``time_slot_id`` each entry is resolved directly from that slot. Without
    it, entries sum the index rows of the opportunity's OPEN slots.
    """
    months = _months(start_month, end_month)
    if await opp_repo.get(opportunity_id) is None:
        raise NotFoundError("opportunity not found")

    if time_slot_id is not None:
        slot = await slot_repo.get(opportunity_id, time_slot_id)
        if slot is None:
            raise NotFoundError("time slot not found")
        return slot_availability(slot, months)

    slots = await slot_repo.list_for_opportunity(opportunity_id)
    open_ids = [slot.id for slot in slots if slot.status == TimeSlotStatus.OPEN]
    rows = await index_repo.list_range(opportunity_id, months[0], months[-1]) if open_ids else []
    return aggregate_availability(months, rows, open_ids)


async def validate_month_selection(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    *,
    opportunity_id: int,
    months: Sequence[str],
    time_slot_id: Optional[int] = None,
) -> MonthSelection:
    if await opp_repo.get(opportunity_id) is None:
        raise NotFoundError("opportunity not found")
    slots = await slot_repo.list_for_opportunity(opportunity_id)
    if time_slot_id is not None:
        slots = [slot for slot in slots if slot.id == time_slot_id]
        if not slots:
            raise NotFoundError("time slot not found")
    return check_month_selection(months, slots)
