from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from ..models import DateCapacity, TimeSlot, TimeSlotStatus
from .capacity import resolve
from .months import contains, days_between, next_month, parse_month


@dataclass(frozen=True)
class SlotMonth:
    time_slot_id: int
    capacity: int
    booked_count: int

    @property
    def available(self) -> int:
        return self.capacity - self.booked_count


@dataclass(frozen=True)
class MonthAvailability:
    month: str
    capacity: int = 0
    booked_count: int = 0
    slots: tuple[SlotMonth, ...] = field(default_factory=tuple)

    @property
    def available(self) -> int:
        return self.capacity - self.booked_count

    @property
    def is_available(self) -> bool:
        return self.available > 0


@dataclass(frozen=True)
class MonthSelection:
    is_valid: bool
    error: Optional[str] = None
    time_slot_ids: tuple[int, ...] = ()


def slot_availability(slot: TimeSlot, months: Sequence[str]) -> list[MonthAvailability]:
    """One resolver result per month; months outside the slot read as zero capacity."""
    items: list[MonthAvailability] = []
    for month in months:
        if not contains(slot.start_month, slot.end_month, month):
            items.append(MonthAvailability(month=month))
            continue
        view = resolve(slot, month)
        items.append(
            MonthAvailability(
                month=month,
                capacity=view.capacity,
                booked_count=view.booked_count,
                slots=(SlotMonth(slot.id, view.capacity, view.booked_count),),
            )
        )
    return items


def aggregate_availability(
    months: Sequence[str],
    rows: Iterable[DateCapacity],
    open_slot_ids: Iterable[int],
) -> list[MonthAvailability]:
    """
    Sum index rows per month across open slots only.

    FILLED, CLOSED and CANCELLED slots do not contribute even when their rows
    still show spare capacity. Every month in ``months`` is present in the result.
    """
    wanted = set(open_slot_ids)
    by_month: dict[str, list[SlotMonth]] = defaultdict(list)
    for row in rows:
        if row.time_slot_id not in wanted:
            continue
        by_month[row.month].append(SlotMonth(row.time_slot_id, row.capacity, row.booked_count or 0))

    items: list[MonthAvailability] = []
    for month in months:
        parts = tuple(sorted(by_month.get(month, ()), key=lambda part: part.time_slot_id))
        items.append(
            MonthAvailability(
                month=month,
                capacity=sum(part.capacity for part in parts),
                booked_count=sum(part.booked_count for part in parts),
                slots=parts,
            )
        )
    return items


def check_month_selection(months: Sequence[str], slots: Sequence[TimeSlot]) -> MonthSelection:
    """
    Validate an applicant's month picks against the opportunity's open slots.

    The picks must be non-empty, consecutive, fall inside a single open slot and
    span at least that slot's minimum stay. When several slots fit, the most
    lenient minimum stay applies.
    """
    if not months:
        return MonthSelection(False, "select at least one month")
    try:
        for month in months:
            parse_month(month)
    except ValueError as exc:
        return MonthSelection(False, str(exc))

    ordered = sorted(set(months))
    for prev, curr in zip(ordered, ordered[1:]):
        if next_month(prev) != curr:
            return MonthSelection(False, "selected months must be consecutive")

    first, last = ordered[0], ordered[-1]
    candidates = [
        slot
        for slot in slots
        if slot.status == TimeSlotStatus.OPEN
        and contains(slot.start_month, slot.end_month, first)
        and contains(slot.start_month, slot.end_month, last)
    ]
    if not candidates:
        return MonthSelection(False, "selected months are not within an available time slot")

    days = days_between(first, last)
    fitting = [slot for slot in candidates if days >= slot.minimum_stay]
    if not fitting:
        minimum_stay = min(slot.minimum_stay for slot in candidates)
        return MonthSelection(False, f"stay must be at least {minimum_stay} days")
    return MonthSelection(True, None, tuple(slot.id for slot in fitting))
