from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from ..models import MonthlyCapacity
from .errors import ConflictError, ValidationError
from .months import first_day, last_day, month_range, parse_month


@dataclass(frozen=True)
class OverrideDefinition:
    start_date: date
    end_date: date
    capacity: int


@dataclass(frozen=True)
class MonthlyCapacityDefinition:
    month: str
    capacity: int


@dataclass(frozen=True)
class SlotDefinition:
    """Host-supplied time slot fields, already shaped by the request schema."""

    start_month: str
    end_month: str
    default_capacity: int
    minimum_stay: int = 14
    description: str = ""
    work_days_per_week: Optional[int] = None
    work_hours_per_day: Optional[int] = None
    capacity_overrides: tuple[OverrideDefinition, ...] = field(default_factory=tuple)
    monthly_capacities: tuple[MonthlyCapacityDefinition, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PlannedMonth:
    month: str
    capacity: int
    booked_count: int


def validate_definition(definition: SlotDefinition) -> list[str]:
    """Check every field constraint; returns the slot's months. Raises ValidationError."""
    try:
        parse_month(definition.start_month)
        parse_month(definition.end_month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if definition.start_month > definition.end_month:
        raise ValidationError("start_month must not be later than end_month")
    if definition.default_capacity < 1:
        raise ValidationError("default_capacity must be >= 1")
    if definition.minimum_stay < 1:
        raise ValidationError("minimum_stay must be >= 1")
    if definition.work_days_per_week is not None and not 1 <= definition.work_days_per_week <= 7:
        raise ValidationError("work_days_per_week must be between 1 and 7")
    if definition.work_hours_per_day is not None and not 1 <= definition.work_hours_per_day <= 24:
        raise ValidationError("work_hours_per_day must be between 1 and 24")

    slot_start = first_day(definition.start_month)
    slot_end = last_day(definition.end_month)
    for override in definition.capacity_overrides:
        if override.start_date > override.end_date:
            raise ValidationError("override end_date must not be earlier than start_date")
        if override.start_date < slot_start or override.end_date > slot_end:
            raise ValidationError("override range must lie within the time slot")
        if override.capacity < 1:
            raise ValidationError("override capacity must be >= 1")

    months = month_range(definition.start_month, definition.end_month)
    seen: set[str] = set()
    for entry in definition.monthly_capacities:
        if entry.month not in months:
            raise ValidationError(f"monthly capacity for {entry.month} is outside the time slot")
        if entry.month in seen:
            raise ValidationError(f"duplicate monthly capacity for {entry.month}")
        if entry.capacity < 1:
            raise ValidationError("monthly capacity must be >= 1")
        seen.add(entry.month)
    return months


def plan_monthly_capacities(
    definition: SlotDefinition,
    existing: Iterable[MonthlyCapacity] = (),
    previous_default: Optional[int] = None,
) -> list[PlannedMonth]:
    """
    Monthly entries for ``definition``, carrying booked counts over from ``existing``.

    A month listed in the definition takes that capacity. An existing month whose
    capacity matched ``previous_default`` follows the new default; any other
    existing month keeps its host-adjusted capacity. New months start at the
    default with nothing booked. Raises ConflictError when a month holding
    bookings would be dropped or shrunk below its booked count.
    """
    months = month_range(definition.start_month, definition.end_month)
    explicit = {entry.month: entry.capacity for entry in definition.monthly_capacities}
    current = {entry.month: entry for entry in existing}

    for month, entry in current.items():
        if month not in months and (entry.booked_count or 0) > 0:
            raise ConflictError(f"month {month} has bookings and cannot be removed")

    planned: list[PlannedMonth] = []
    for month in months:
        prior = current.get(month)
        booked = (prior.booked_count or 0) if prior is not None else 0
        if month in explicit:
            capacity = explicit[month]
        elif prior is not None and prior.capacity != previous_default:
            capacity = prior.capacity
        else:
            capacity = definition.default_capacity
        if capacity < booked:
            raise ConflictError(f"capacity {capacity} for {month} is below its {booked} bookings")
        planned.append(PlannedMonth(month=month, capacity=capacity, booked_count=booked))
    return planned


def validate_override_bookings(definition: SlotDefinition, booked_overrides: Iterable[tuple[date, date, int]]) -> None:
    """Reject a redefinition that drops or shrinks an override still holding bookings."""
    incoming = {(o.start_date, o.end_date): o.capacity for o in definition.capacity_overrides}
    for start, end, booked in booked_overrides:
        if booked <= 0:
            continue
        capacity = incoming.get((start, end))
        if capacity is None:
            raise ConflictError(f"override {start}..{end} has bookings and cannot be removed")
        if capacity < booked:
            raise ConflictError(f"override {start}..{end} capacity {capacity} is below its {booked} bookings")
