import logging

from ..domain.capacity import IndexRow, resolve
from ..domain.errors import MaterializationError
from ..domain.months import month_range
from ..domain.repositories import DateCapacityRepository
from ..models import TimeSlot

logger = logging.getLogger(__name__)


def build_index_rows(slot: TimeSlot, prior_booked: dict[str, int] | None = None) -> list[IndexRow]:
    """
    Month rows for ``slot``. Months without a dedicated counter on the slot keep
    the booked count from ``prior_booked`` rather than resetting to zero.
    """
    try:
        months = month_range(slot.start_month, slot.end_month)
    except ValueError as exc:
        raise MaterializationError(str(exc)) from exc
    if not months:
        raise MaterializationError(f"empty month range {slot.start_month}..{slot.end_month}")

    carried = prior_booked or {}
    rows: list[IndexRow] = []
    for month in months:
        view = resolve(slot, month)
        booked = view.booked_count
        if view.source == "default":
            booked = carried.get(month, 0)
        rows.append(IndexRow(month=month, capacity=view.capacity, booked_count=booked))
    return rows


async def materialize(
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    time_slot_id: int,
    slot: TimeSlot,
) -> int:
    """Rebuild every index row of one slot. Rows are computed before anything is deleted."""
    prior = await index_repo.list_for_slot(opportunity_id, time_slot_id)
    rows = build_index_rows(slot, {row.month: row.booked_count for row in prior})
    written = await index_repo.replace_for_slot(opportunity_id, time_slot_id, rows)
    logger.info(
        "materialized %d date capacity rows for opportunity=%s time_slot=%s",
        written,
        opportunity_id,
        time_slot_id,
    )
    return written
