from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from ..models import CapacityOverride, MonthlyCapacity, TimeSlot, TimeSlotStatus
from .capacity import monthly_entry, resolve, winning_override
from .errors import CapacityExceededError, ConflictError, SlotNotOpenError, ValidationError
from .months import contains, month_of, parse_month


@dataclass(frozen=True)
class BookingTarget:
    month: str
    day: Optional[date] = None


@dataclass(frozen=True)
class BookingPlan:
    """Counters touched by one booking. ``month_entry`` is None when the month has no entry yet."""

    target: BookingTarget
    month_capacity: int
    month_entry: Optional[MonthlyCapacity]
    override: Optional[CapacityOverride] = None


def parse_target(value: Union[str, date]) -> BookingTarget:
    """Accept a ``date``, an ISO ``YYYY-MM-DD`` string or a ``YYYY-MM`` month."""
    if isinstance(value, date):
        return BookingTarget(month=month_of(value), day=value)
    try:
        if len(value) == 7:
            parse_month(value)
            return BookingTarget(month=value)
        day = date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"invalid booking target {value!r}") from exc
    return BookingTarget(month=month_of(day), day=day)


def _ensure_in_slot(slot: TimeSlot, target: BookingTarget) -> None:
    if not contains(slot.start_month, slot.end_month, target.month):
        raise ValidationError(f"{target.month} is outside the time slot")


def plan_booking(slot: TimeSlot, target: BookingTarget) -> BookingPlan:
    """
    Pure check that one more booking fits ``target``.

    The decision is the resolver's: the booking fits when the resolved view of
    ``target`` still has room. Raises domain errors otherwise.
    """
    if slot.status in (TimeSlotStatus.CLOSED, TimeSlotStatus.CANCELLED):
        raise SlotNotOpenError("time slot is not accepting bookings")
    _ensure_in_slot(slot, target)

    if not resolve(slot, target.day or target.month).is_available:
        raise CapacityExceededError("capacity exceeded")

    override = winning_override(slot, target.day) if target.day is not None else None
    entry = monthly_entry(slot, target.month)
    capacity = entry.capacity if entry is not None else slot.default_capacity
    return BookingPlan(target=target, month_capacity=capacity, month_entry=entry, override=override)


def plan_release(slot: TimeSlot, target: BookingTarget, *, was_confirmed: bool) -> BookingPlan:
    _ensure_in_slot(slot, target)
    applied = slot.applied_count or 0
    confirmed = slot.confirmed_count or 0
    if applied <= 0:
        raise ConflictError("time slot has no bookings to release")
    if was_confirmed and confirmed <= 0:
        raise ConflictError("time slot has no confirmed bookings to release")
    if not was_confirmed and confirmed >= applied:
        raise ConflictError("every booking on this time slot is confirmed")

    entry = monthly_entry(slot, target.month)
    if entry is None or (entry.booked_count or 0) <= 0:
        raise ConflictError(f"no booking recorded for {target.month}")

    override = winning_override(slot, target.day) if target.day is not None else None
    # Bookings made before the override existed were never charged to it.
    if override is not None and (override.booked_count or 0) <= 0:
        override = None
    return BookingPlan(target=target, month_capacity=entry.capacity, month_entry=entry, override=override)


def plan_confirm(slot: TimeSlot, target: BookingTarget) -> None:
    if slot.status == TimeSlotStatus.CANCELLED:
        raise SlotNotOpenError("time slot is cancelled")
    _ensure_in_slot(slot, target)
    if (slot.confirmed_count or 0) >= (slot.applied_count or 0):
        raise ConflictError("no unconfirmed booking to confirm")
