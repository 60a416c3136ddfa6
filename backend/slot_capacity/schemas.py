from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer, model_validator

from .domain.availability import MonthAvailability, MonthSelection
from .domain.definitions import MonthlyCapacityDefinition, OverrideDefinition, SlotDefinition
from .models import CapacityOverride, MonthlyCapacity, TimeSlot, TimeSlotStatus
from .usecases.bookings import BookingResult
from .utils.time import utc_naive_to_local

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class CapacityOverrideIn(BaseModel):
    start_date: date
    end_date: date
    capacity: int = Field(ge=1)

    @model_validator(mode="after")
    def _check_range(self) -> "CapacityOverrideIn":
        if self.start_date > self.end_date:
            raise ValueError("end_date must not be earlier than start_date")
        return self


class MonthlyCapacityIn(BaseModel):
    month: str = Field(pattern=MONTH_PATTERN)
    capacity: int = Field(ge=1)


class TimeSlotCreate(BaseModel):
    start_month: str = Field(pattern=MONTH_PATTERN)
    end_month: str = Field(pattern=MONTH_PATTERN)
    default_capacity: int = Field(ge=1)
    minimum_stay: Optional[int] = Field(default=None, ge=1)
    description: str = Field(default="", max_length=1000)
    work_days_per_week: Optional[int] = Field(default=None, ge=1, le=7)
    work_hours_per_day: Optional[int] = Field(default=None, ge=1, le=24)
    capacity_overrides: List[CapacityOverrideIn] = Field(default_factory=list)
    monthly_capacities: List[MonthlyCapacityIn] = Field(default_factory=list)

    def to_definition(self, *, default_minimum_stay: int) -> SlotDefinition:
        return SlotDefinition(
            start_month=self.start_month,
            end_month=self.end_month,
            default_capacity=self.default_capacity,
            minimum_stay=self.minimum_stay or default_minimum_stay,
            description=self.description,
            work_days_per_week=self.work_days_per_week,
            work_hours_per_day=self.work_hours_per_day,
            capacity_overrides=tuple(
                OverrideDefinition(start_date=o.start_date, end_date=o.end_date, capacity=o.capacity)
                for o in self.capacity_overrides
            ),
            monthly_capacities=tuple(
                MonthlyCapacityDefinition(month=m.month, capacity=m.capacity) for m in self.monthly_capacities
            ),
        )


class TimeSlotUpdate(TimeSlotCreate):
    status: Optional[TimeSlotStatus] = None


class MonthlyCapacityUpdate(BaseModel):
    capacity: int = Field(ge=1)


class CapacityOverrideRead(BaseModel):
    start_date: date
    end_date: date
    capacity: int
    booked_count: int

    @classmethod
    def from_db(cls, *, override: CapacityOverride) -> "CapacityOverrideRead":
        return cls(
            start_date=override.start_date,
            end_date=override.end_date,
            capacity=override.capacity,
            booked_count=override.booked_count or 0,
        )


class MonthlyCapacityRead(BaseModel):
    month: str
    capacity: int
    booked_count: int

    @classmethod
    def from_db(cls, *, entry: MonthlyCapacity) -> "MonthlyCapacityRead":
        return cls(month=entry.month, capacity=entry.capacity, booked_count=entry.booked_count or 0)


class TimeSlotRead(BaseModel):
    time_slot_id: int
    opportunity_id: int
    start_month: str
    end_month: str
    default_capacity: int
    minimum_stay: int
    description: str
    work_days_per_week: Optional[int]
    work_hours_per_day: Optional[int]
    applied_count: int
    confirmed_count: int
    status: TimeSlotStatus
    capacity_overrides: List[CapacityOverrideRead]
    monthly_capacities: List[MonthlyCapacityRead]
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, slot: TimeSlot) -> "TimeSlotRead":
        return cls(
            time_slot_id=slot.id,
            opportunity_id=slot.opportunity_id,
            start_month=slot.start_month,
            end_month=slot.end_month,
            default_capacity=slot.default_capacity,
            minimum_stay=slot.minimum_stay,
            description=slot.description or "",
            work_days_per_week=slot.work_days_per_week,
            work_hours_per_day=slot.work_hours_per_day,
            applied_count=slot.applied_count or 0,
            confirmed_count=slot.confirmed_count or 0,
            status=slot.status,
            capacity_overrides=[CapacityOverrideRead.from_db(override=o) for o in slot.capacity_overrides],
            monthly_capacities=[MonthlyCapacityRead.from_db(entry=m) for m in slot.monthly_capacities],
            created_at=utc_naive_to_local(slot.created_at),
            updated_at=utc_naive_to_local(slot.updated_at),
        )


class SlotMonthRead(BaseModel):
    time_slot_id: int
    capacity: int
    booked_count: int
    available: int


class MonthAvailabilityRead(BaseModel):
    month: str
    capacity: int
    booked_count: int
    available: int
    is_available: bool
    slots: List[SlotMonthRead]

    @classmethod
    def from_domain(cls, *, item: MonthAvailability) -> "MonthAvailabilityRead":
        return cls(
            month=item.month,
            capacity=item.capacity,
            booked_count=item.booked_count,
            available=item.available,
            is_available=item.is_available,
            slots=[
                SlotMonthRead(
                    time_slot_id=part.time_slot_id,
                    capacity=part.capacity,
                    booked_count=part.booked_count,
                    available=part.available,
                )
                for part in item.slots
            ],
        )


class MonthSelectionRequest(BaseModel):
    months: List[str] = Field(default_factory=list)
    time_slot_id: Optional[int] = None


class MonthSelectionRead(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    time_slot_ids: List[int] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, *, selection: MonthSelection) -> "MonthSelectionRead":
        return cls(is_valid=selection.is_valid, error=selection.error, time_slot_ids=list(selection.time_slot_ids))


class BookingRequest(BaseModel):
    target: str = Field(description="YYYY-MM month or YYYY-MM-DD date being booked")


class BookingRelease(BookingRequest):
    was_confirmed: bool = False


class BookingRead(BaseModel):
    time_slot_id: int
    target: str
    capacity: int
    booked_count: int
    available: int
    is_available: bool
    month_capacity: Optional[int] = None
    month_booked_count: Optional[int] = None
    applied_count: int
    confirmed_count: int
    status: TimeSlotStatus

    @classmethod
    def from_result(cls, *, result: BookingResult) -> "BookingRead":
        target = result.target.day.isoformat() if result.target.day is not None else result.target.month
        return cls(
            time_slot_id=result.slot.id,
            target=target,
            capacity=result.capacity.capacity,
            booked_count=result.capacity.booked_count,
            available=result.capacity.available,
            is_available=result.capacity.is_available,
            month_capacity=result.capacity.month_capacity,
            month_booked_count=result.capacity.month_booked_count,
            applied_count=result.slot.applied_count,
            confirmed_count=result.slot.confirmed_count,
            status=result.slot.status,
        )


class StatusRefreshRead(BaseModel):
    time_slot_id: int
    opportunity_id: int
    status_from: TimeSlotStatus
    status_to: TimeSlotStatus
