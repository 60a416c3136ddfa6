from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.capacity import IndexRow
from ..domain.repositories import DateCapacityRepository, OpportunityRepository, TimeSlotRepository
from ..models import DateCapacity, Opportunity, TimeSlot, TimeSlotStatus


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyOpportunityRepository(OpportunityRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, opportunity_id: int) -> Opportunity | None:
        result = await self.session.scalar(select(Opportunity).where(Opportunity.id == opportunity_id))
        return result if isinstance(result, Opportunity) else None

    async def get_for_update(self, opportunity_id: int) -> Opportunity | None:
        result = await self.session.scalar(
            select(Opportunity).where(Opportunity.id == opportunity_id).with_for_update()
        )
        return result if isinstance(result, Opportunity) else None


class SqlAlchemyTimeSlotRepository(TimeSlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, opportunity_id: int, slot_id: int) -> TimeSlot | None:
        stmt = select(TimeSlot).where(TimeSlot.id == slot_id, TimeSlot.opportunity_id == opportunity_id)
        result = await self.session.scalar(stmt)
        return result if isinstance(result, TimeSlot) else None

    async def get_for_update(self, opportunity_id: int, slot_id: int) -> TimeSlot | None:
        # Row lock serializes every capacity-affecting write on this slot until commit.
        stmt = (
            select(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.opportunity_id == opportunity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, TimeSlot) else None

    async def list_for_opportunity(self, opportunity_id: int) -> List[TimeSlot]:
        stmt = select(TimeSlot).where(TimeSlot.opportunity_id == opportunity_id).order_by(TimeSlot.id)
        return list((await self.session.scalars(stmt)).all())

    async def list_refreshable_for_update(self) -> List[TimeSlot]:
        stmt = (
            select(TimeSlot)
            .where(TimeSlot.status.in_([TimeSlotStatus.OPEN, TimeSlotStatus.FILLED]))
            .order_by(TimeSlot.id)
            .with_for_update(skip_locked=True)
        )
        return list((await self.session.scalars(stmt)).all())

    async def add(self, opportunity: Opportunity, slot: TimeSlot) -> TimeSlot:
        now = _utc_now_naive()
        slot.created_at = now
        slot.updated_at = now
        opportunity.time_slots.append(slot)
        opportunity.updated_at = now
        await self.session.flush()
        return slot

    async def save(self, slot: TimeSlot) -> TimeSlot:
        slot.updated_at = _utc_now_naive()
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def delete(self, opportunity: Opportunity, slot: TimeSlot) -> None:
        opportunity.time_slots.remove(slot)
        opportunity.updated_at = _utc_now_naive()
        await self.session.flush()


class SqlAlchemyDateCapacityRepository(DateCapacityRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_slot(self, opportunity_id: int, slot_id: int) -> List[DateCapacity]:
        stmt = (
            select(DateCapacity)
            .where(DateCapacity.opportunity_id == opportunity_id, DateCapacity.time_slot_id == slot_id)
            .order_by(DateCapacity.month)
        )
        return list((await self.session.scalars(stmt)).all())

    async def replace_for_slot(self, opportunity_id: int, slot_id: int, rows: Sequence[IndexRow]) -> int:
        await self.delete_for_slot(opportunity_id, slot_id)
        now = _utc_now_naive()
        self.session.add_all(
            [
                DateCapacity(
                    opportunity_id=opportunity_id,
                    time_slot_id=slot_id,
                    month=row.month,
                    capacity=row.capacity,
                    booked_count=row.booked_count,
                    created_at=now,
                    updated_at=now,
                )
                for row in rows
            ]
        )
        await self.session.flush()
        return len(rows)

    async def delete_for_slot(self, opportunity_id: int, slot_id: int) -> int:
        stmt = delete(DateCapacity).where(
            DateCapacity.opportunity_id == opportunity_id,
            DateCapacity.time_slot_id == slot_id,
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def list_range(self, opportunity_id: int, start_month: str, end_month: str) -> List[DateCapacity]:
        stmt = (
            select(DateCapacity)
            .where(
                DateCapacity.opportunity_id == opportunity_id,
                DateCapacity.month >= start_month,
                DateCapacity.month <= end_month,
            )
            .order_by(DateCapacity.month, DateCapacity.time_slot_id)
        )
        return list((await self.session.scalars(stmt)).all())

    async def adjust_booked(self, opportunity_id: int, slot_id: int, month: str, delta: int) -> bool:
        stmt = (
            update(DateCapacity)
            .where(
                DateCapacity.opportunity_id == opportunity_id,
                DateCapacity.time_slot_id == slot_id,
                DateCapacity.month == month,
                DateCapacity.booked_count + delta >= 0,
                DateCapacity.booked_count + delta <= DateCapacity.capacity,
            )
            .values(booked_count=DateCapacity.booked_count + delta, updated_at=_utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0) == 1
