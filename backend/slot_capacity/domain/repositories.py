from __future__ import annotations

from typing import Protocol, Sequence

from ..models import DateCapacity, Opportunity, TimeSlot
from .capacity import IndexRow


class OpportunityRepository(Protocol):
    async def get(self, opportunity_id: int) -> Opportunity | None: ...

    async def get_for_update(self, opportunity_id: int) -> Opportunity | None: ...


class TimeSlotRepository(Protocol):
    async def get(self, opportunity_id: int, slot_id: int) -> TimeSlot | None: ...

    async def get_for_update(self, opportunity_id: int, slot_id: int) -> TimeSlot | None: ...

    async def list_for_opportunity(self, opportunity_id: int) -> list[TimeSlot]: ...

    async def list_refreshable_for_update(self) -> list[TimeSlot]: ...

    async def add(self, opportunity: Opportunity, slot: TimeSlot) -> TimeSlot: ...

    async def save(self, slot: TimeSlot) -> TimeSlot: ...

    async def delete(self, opportunity: Opportunity, slot: TimeSlot) -> None: ...


class DateCapacityRepository(Protocol):
    async def list_for_slot(self, opportunity_id: int, slot_id: int) -> list[DateCapacity]: ...

    async def replace_for_slot(self, opportunity_id: int, slot_id: int, rows: Sequence[IndexRow]) -> int: ...

    async def delete_for_slot(self, opportunity_id: int, slot_id: int) -> int: ...

    async def list_range(self, opportunity_id: int, start_month: str, end_month: str) -> list[DateCapacity]: ...

    async def adjust_booked(self, opportunity_id: int, slot_id: int, month: str, delta: int) -> bool: ...
