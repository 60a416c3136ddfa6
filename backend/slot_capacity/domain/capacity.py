from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional, Union

from ..models import CapacityOverride, MonthlyCapacity, TimeSlot
from .months import month_of, parse_month

CapacitySource = Literal["override", "monthly", "default"]
Target = Union[date, str]


@dataclass(frozen=True)
class CapacityView:
    """
    Resolver result. For a date inside an override, ``month_capacity`` and
    ``month_booked_count`` carry the month the date falls in, and ``available``
    is the smaller of the two remainders.
    """

    capacity: int
    booked_count: int
    source: CapacitySource
    month_capacity: Optional[int] = None
    month_booked_count: Optional[int] = None

    @property
    def available(self) -> int:
        remaining = self.capacity - self.booked_count
        if self.month_capacity is not None:
            remaining = min(remaining, self.month_capacity - (self.month_booked_count or 0))
        return remaining

    @property
    def is_available(self) -> bool:
        return self.available > 0


def winning_override(slot: TimeSlot, day: date) -> Optional[CapacityOverride]:
    """
    Override applying to ``day``. When several overlap, the lowest capacity wins;
    among equal capacities the earliest in the slot's ordering wins.
    """
    best: Optional[CapacityOverride] = None
    for override in slot.capacity_overrides:
        if not override.start_date <= day <= override.end_date:
            continue
        if best is None or override.capacity < best.capacity:
            best = override
    return best


def monthly_entry(slot: TimeSlot, month: str) -> Optional[MonthlyCapacity]:
    for entry in slot.monthly_capacities:
        if entry.month == month:
            return entry
    return None


def resolve(slot: TimeSlot, target: Target) -> CapacityView:
    """
    Effective capacity of ``slot`` on a date or in a ``YYYY-MM`` month.

    Precedence: an override covering the date, then the month's entry, then the
    slot default with nothing booked. Month targets never consult overrides.
    An override date still draws on its month, so its view is bounded by the
    month's remaining room. Does not mutate ``slot``.
    """
    if isinstance(target, date):
        month = month_of(target)
        override = winning_override(slot, target)
        if override is not None:
            entry = monthly_entry(slot, month)
            return CapacityView(
                override.capacity,
                override.booked_count or 0,
                "override",
                month_capacity=entry.capacity if entry is not None else slot.default_capacity,
                month_booked_count=(entry.booked_count or 0) if entry is not None else 0,
            )
    else:
        parse_month(target)
        month = target

    entry = monthly_entry(slot, month)
    if entry is not None:
        return CapacityView(entry.capacity, entry.booked_count or 0, "monthly")
    return CapacityView(slot.default_capacity, 0, "default")


@dataclass(frozen=True)
class IndexRow:
    month: str
    capacity: int
    booked_count: int
