from datetime import date
from typing import Optional

from ..domain.capacity import monthly_entry
from ..domain.definitions import (
    SlotDefinition,
    plan_monthly_capacities,
    validate_definition,
    validate_override_bookings,
)
from ..domain.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..domain.months import contains, parse_month
from ..domain.repositories import DateCapacityRepository, OpportunityRepository, TimeSlotRepository
from ..domain.status import derive_opportunity, derive_slot
from ..models import CapacityOverride, MonthlyCapacity, Opportunity, TimeSlot, TimeSlotStatus
from ..utils.time import current_month
from .capacity_index import materialize


def _require_host(opportunity: Opportunity, host_id: int) -> None:
    if opportunity.host_id != host_id:
        raise ForbiddenError("only the opportunity host may change its time slots")


async def _load_opportunity(
    opp_repo: OpportunityRepository,
    opportunity_id: int,
    *,
    for_update: bool = False,
) -> Opportunity:
    if for_update:
        opportunity = await opp_repo.get_for_update(opportunity_id)
    else:
        opportunity = await opp_repo.get(opportunity_id)
    if opportunity is None:
        raise NotFoundError("opportunity not found")
    return opportunity


async def _load_slot_for_update(slot_repo: TimeSlotRepository, opportunity_id: int, slot_id: int) -> TimeSlot:
    slot = await slot_repo.get_for_update(opportunity_id, slot_id)
    if slot is None:
        raise NotFoundError("time slot not found")
    return slot


def _apply_definition(slot: TimeSlot, definition: SlotDefinition) -> None:
    slot.start_month = definition.start_month
    slot.end_month = definition.end_month
    slot.default_capacity = definition.default_capacity
    slot.minimum_stay = definition.minimum_stay
    slot.description = definition.description
    slot.work_days_per_week = definition.work_days_per_week
    slot.work_hours_per_day = definition.work_hours_per_day


async def list_slots(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    *,
    opportunity_id: int,
) -> list[TimeSlot]:
    await _load_opportunity(opp_repo, opportunity_id)
    return await slot_repo.list_for_opportunity(opportunity_id)


async def get_slot(
    slot_repo: TimeSlotRepository,
    *,
    opportunity_id: int,
    slot_id: int,
) -> TimeSlot:
    slot = await slot_repo.get(opportunity_id, slot_id)
    if slot is None:
        raise NotFoundError("time slot not found")
    return slot


async def create_slot(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    host_id: int,
    definition: SlotDefinition,
    today: Optional[date] = None,
) -> TimeSlot:
    validate_definition(definition)
    opportunity = await _load_opportunity(opp_repo, opportunity_id, for_update=True)
    _require_host(opportunity, host_id)

    slot = TimeSlot(
        applied_count=0,
        confirmed_count=0,
        status=TimeSlotStatus.OPEN,
        capacity_overrides=[
            CapacityOverride(
                position=position,
                start_date=override.start_date,
                end_date=override.end_date,
                capacity=override.capacity,
                booked_count=0,
            )
            for position, override in enumerate(definition.capacity_overrides)
        ],
        monthly_capacities=[
            MonthlyCapacity(month=planned.month, capacity=planned.capacity, booked_count=planned.booked_count)
            for planned in plan_monthly_capacities(definition)
        ],
    )
    _apply_definition(slot, definition)
    derive_slot(slot, current_month=current_month(today))

    await slot_repo.add(opportunity, slot)
    derive_opportunity(opportunity)
    await materialize(index_repo, opportunity_id=opportunity_id, time_slot_id=slot.id, slot=slot)
    return slot


async def update_slot(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    slot_id: int,
    host_id: int,
    definition: SlotDefinition,
    status: Optional[TimeSlotStatus] = None,
    today: Optional[date] = None,
) -> tuple[TimeSlot, TimeSlotStatus]:
    """
    Replace a slot's definition and rebuild its index rows.

    Booked counts survive for months and overrides that remain. An update
    re-derives a CLOSED slot from its new dates; a CANCELLED slot only comes
    back when ``status`` is OPEN. Returns the slot and its status before the update.
    """
    validate_definition(definition)
    if status not in (None, TimeSlotStatus.OPEN, TimeSlotStatus.CANCELLED):
        raise ValidationError("status may only be set to OPEN or CANCELLED")

    # Lock before any other read so the snapshot used for the monthly and index
    # rows starts after every committed booking on this slot.
    slot = await _load_slot_for_update(slot_repo, opportunity_id, slot_id)
    opportunity = await _load_opportunity(opp_repo, opportunity_id)
    _require_host(opportunity, host_id)
    previous_status = slot.status

    planned = plan_monthly_capacities(
        definition,
        slot.monthly_capacities,
        previous_default=slot.default_capacity,
    )
    validate_override_bookings(
        definition,
        [(o.start_date, o.end_date, o.booked_count or 0) for o in slot.capacity_overrides],
    )

    override_booked = {(o.start_date, o.end_date): o.booked_count or 0 for o in slot.capacity_overrides}
    slot.capacity_overrides = [
        CapacityOverride(
            position=position,
            start_date=override.start_date,
            end_date=override.end_date,
            capacity=override.capacity,
            booked_count=override_booked.get((override.start_date, override.end_date), 0),
        )
        for position, override in enumerate(definition.capacity_overrides)
    ]

    existing_months = {entry.month: entry for entry in slot.monthly_capacities}
    entries: list[MonthlyCapacity] = []
    for month in planned:
        entry = existing_months.get(month.month) or MonthlyCapacity(month=month.month)
        entry.capacity = month.capacity
        entry.booked_count = month.booked_count
        entries.append(entry)
    slot.monthly_capacities = entries
    _apply_definition(slot, definition)

    if status == TimeSlotStatus.CANCELLED:
        slot.status = TimeSlotStatus.CANCELLED
    elif status == TimeSlotStatus.OPEN or slot.status == TimeSlotStatus.CLOSED:
        slot.status = TimeSlotStatus.OPEN
    derive_slot(slot, current_month=current_month(today))

    await slot_repo.save(slot)
    await materialize(index_repo, opportunity_id=opportunity_id, time_slot_id=slot.id, slot=slot)
    return slot, previous_status


async def delete_slot(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    slot_id: int,
    host_id: int,
) -> TimeSlot:
    opportunity = await _load_opportunity(opp_repo, opportunity_id, for_update=True)
    _require_host(opportunity, host_id)
    slot = await _load_slot_for_update(slot_repo, opportunity_id, slot_id)
    if (slot.applied_count or 0) > 0:
        raise ConflictError("time slot has applications and cannot be deleted")

    await index_repo.delete_for_slot(opportunity_id, slot_id)
    await slot_repo.delete(opportunity, slot)
    derive_opportunity(opportunity)
    return slot


async def cancel_slot(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    *,
    opportunity_id: int,
    slot_id: int,
    host_id: int,
) -> tuple[TimeSlot, TimeSlotStatus]:
    slot = await _load_slot_for_update(slot_repo, opportunity_id, slot_id)
    opportunity = await _load_opportunity(opp_repo, opportunity_id)
    _require_host(opportunity, host_id)
    previous_status = slot.status
    if previous_status == TimeSlotStatus.CANCELLED:
        return slot, previous_status
    slot.status = TimeSlotStatus.CANCELLED
    await slot_repo.save(slot)
    return slot, previous_status


async def set_monthly_capacity(
    opp_repo: OpportunityRepository,
    slot_repo: TimeSlotRepository,
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    slot_id: int,
    host_id: int,
    month: str,
    capacity: int,
    today: Optional[date] = None,
) -> TimeSlot:
    try:
        parse_month(month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if capacity < 1:
        raise ValidationError("capacity must be >= 1")

    slot = await _load_slot_for_update(slot_repo, opportunity_id, slot_id)
    opportunity = await _load_opportunity(opp_repo, opportunity_id)
    _require_host(opportunity, host_id)
    if not contains(slot.start_month, slot.end_month, month):
        raise ValidationError(f"{month} is outside the time slot")

    entry = monthly_entry(slot, month)
    if entry is None:
        entry = MonthlyCapacity(month=month, booked_count=0)
        slot.monthly_capacities.append(entry)
    if capacity < (entry.booked_count or 0):
        raise ConflictError(f"capacity {capacity} for {month} is below its {entry.booked_count} bookings")
    entry.capacity = capacity
    derive_slot(slot, current_month=current_month(today))

    await slot_repo.save(slot)
    await materialize(index_repo, opportunity_id=opportunity_id, time_slot_id=slot.id, slot=slot)
    return slot


async def refresh_statuses(
    slot_repo: TimeSlotRepository,
    *,
    today: Optional[date] = None,
) -> list[tuple[TimeSlot, TimeSlotStatus]]:
    """Periodic pass closing OPEN and FILLED slots whose last month has passed."""
    month = current_month(today)
    changed: list[tuple[TimeSlot, TimeSlotStatus]] = []
    for slot in await slot_repo.list_refreshable_for_update():
        previous_status = slot.status
        if derive_slot(slot, current_month=month):
            await slot_repo.save(slot)
            changed.append((slot, previous_status))
    return changed
