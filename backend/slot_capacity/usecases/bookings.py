import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from ..domain.bookings import BookingTarget, parse_target, plan_booking, plan_confirm, plan_release
from ..domain.capacity import CapacityView, resolve
from ..domain.errors import NotFoundError
from ..domain.repositories import DateCapacityRepository, TimeSlotRepository
from ..domain.status import derive_slot
from ..models import MonthlyCapacity, TimeSlot, TimeSlotStatus
from ..utils.time import current_month
from .capacity_index import materialize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingResult:
    slot: TimeSlot
    target: BookingTarget
    capacity: CapacityView
    previous_status: TimeSlotStatus


async def _load_slot_for_update(slot_repo: TimeSlotRepository, opportunity_id: int, slot_id: int) -> TimeSlot:
    slot = await slot_repo.get_for_update(opportunity_id, slot_id)
    if slot is None:
        raise NotFoundError("time slot not found")
    return slot


async def _sync_index(
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    slot: TimeSlot,
    month: str,
    delta: int,
) -> None:
    if await index_repo.adjust_booked(opportunity_id, slot.id, month, delta):
        return
    # Index row missing or out of step with the slot; rebuild it from the slot's counters.
    logger.warning(
        "date capacity row out of sync for opportunity=%s time_slot=%s month=%s; rematerializing",
        opportunity_id,
        slot.id,
        month,
    )
    await materialize(index_repo, opportunity_id=opportunity_id, time_slot_id=slot.id, slot=slot)


async def apply_booking(
    slot_repo: TimeSlotRepository,
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    slot_id: int,
    target: Union[str, date],
    today: Optional[date] = None,
) -> BookingResult:
    """
    Reserve one place on ``target`` (a month or a date).

    The slot row is locked before the capacity check, so the check and the
    increment happen as one step with respect to any other booking on the slot.
    Raises CapacityExceededError when no room is left.
    """
    booking_target = parse_target(target)
    slot = await _load_slot_for_update(slot_repo, opportunity_id, slot_id)
    previous_status = slot.status
    derive_slot(slot, current_month=current_month(today))

    plan = plan_booking(slot, booking_target)
    entry = plan.month_entry
    if entry is None:
        entry = MonthlyCapacity(month=booking_target.month, capacity=plan.month_capacity, booked_count=0)
        slot.monthly_capacities.append(entry)
    entry.booked_count = (entry.booked_count or 0) + 1
    if plan.override is not None:
        plan.override.booked_count = (plan.override.booked_count or 0) + 1
    slot.applied_count = (slot.applied_count or 0) + 1
    derive_slot(slot, current_month=current_month(today))

    await slot_repo.save(slot)
    await _sync_index(index_repo, opportunity_id=opportunity_id, slot=slot, month=booking_target.month, delta=1)
    return BookingResult(
        slot=slot,
        target=booking_target,
        capacity=resolve(slot, booking_target.day or booking_target.month),
        previous_status=previous_status,
    )


async def release_booking(
    slot_repo: TimeSlotRepository,
    index_repo: DateCapacityRepository,
    *,
    opportunity_id: int,
    slot_id: int,
    target: Union[str, date],
    was_confirmed: bool = False,
    today: Optional[date] = None,
) -> BookingResult:
    """Give back a place after a withdrawal or rejection. May flip FILLED back to OPEN."""
    booking_target = parse_target(target)
    slot = await _load_slot_for_update(slot_repo, opportunity_id, slot_id)
    previous_status = slot.status

    plan = plan_release(slot, booking_target, was_confirmed=was_confirmed)
    if plan.month_entry is not None:
        plan.month_entry.booked_count = (plan.month_entry.booked_count or 0) - 1
    if plan.override is not None:
        plan.override.booked_count = (plan.override.booked_count or 0) - 1
    slot.applied_count = (slot.applied_count or 0) - 1
    if was_confirmed:
        slot.confirmed_count = (slot.confirmed_count or 0) - 1
    derive_slot(slot, current_month=current_month(today))

    await slot_repo.save(slot)
    await _sync_index(index_repo, opportunity_id=opportunity_id, slot=slot, month=booking_target.month, delta=-1)
    return BookingResult(
        slot=slot,
        target=booking_target,
        capacity=resolve(slot, booking_target.day or booking_target.month),
        previous_status=previous_status,
    )


async def confirm_booking(
    slot_repo: TimeSlotRepository,
    *,
    opportunity_id: int,
    slot_id: int,
    target: Union[str, date],
    today: Optional[date] = None,
) -> BookingResult:
    """Mark one applied booking as accepted. Capacity counters are unchanged."""
    booking_target = parse_target(target)
    slot = await _load_slot_for_update(slot_repo, opportunity_id, slot_id)
    previous_status = slot.status

    plan_confirm(slot, booking_target)
    slot.confirmed_count = (slot.confirmed_count or 0) + 1
    derive_slot(slot, current_month=current_month(today))

    await slot_repo.save(slot)
    return BookingResult(
        slot=slot,
        target=booking_target,
        capacity=resolve(slot, booking_target.day or booking_target.month),
        previous_status=previous_status,
    )
