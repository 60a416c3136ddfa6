from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, String


class Base(DeclarativeBase):
    pass


class TimeSlotStatus(StrEnum):
    OPEN = "OPEN"
    FILLED = "FILLED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class Opportunity(Base):
    __tablename__ = "opportunities"
    __table_args__ = (
        UniqueConstraint("slug", name="uq_opportunities_slug"),
        Index("idx_opportunities_host", "host_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    has_time_slots: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    time_slots: Mapped[list["TimeSlot"]] = relationship(
        back_populates="opportunity",
        cascade="all, delete-orphan",
        order_by="TimeSlot.id",
        lazy="selectin",
    )


class TimeSlot(Base):
    __tablename__ = "time_slots"
    __table_args__ = (
        CheckConstraint("start_month <= end_month", name="chk_time_slots_months"),
        CheckConstraint("default_capacity >= 1", name="chk_time_slots_capacity"),
        CheckConstraint("minimum_stay >= 1", name="chk_time_slots_minimum_stay"),
        CheckConstraint("confirmed_count >= 0", name="chk_time_slots_confirmed"),
        CheckConstraint("confirmed_count <= applied_count", name="chk_time_slots_counts"),
        Index("idx_time_slots_opportunity", "opportunity_id"),
        Index("idx_time_slots_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    opportunity_id: Mapped[int] = mapped_column(ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False)
    start_month: Mapped[str] = mapped_column(String(7), nullable=False)
    end_month: Mapped[str] = mapped_column(String(7), nullable=False)
    default_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    minimum_stay: Mapped[int] = mapped_column(Integer, nullable=False, default=14)
    work_days_per_week: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    work_hours_per_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    applied_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    confirmed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[TimeSlotStatus] = mapped_column(
        Enum(
            TimeSlotStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=TimeSlotStatus.OPEN,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    opportunity: Mapped["Opportunity"] = relationship(back_populates="time_slots")
    capacity_overrides: Mapped[list["CapacityOverride"]] = relationship(
        back_populates="time_slot",
        cascade="all, delete-orphan",
        order_by="CapacityOverride.position",
        lazy="selectin",
    )
    monthly_capacities: Mapped[list["MonthlyCapacity"]] = relationship(
        back_populates="time_slot",
        cascade="all, delete-orphan",
        order_by="MonthlyCapacity.month",
        lazy="selectin",
    )


class CapacityOverride(Base):
    __tablename__ = "time_slot_capacity_overrides"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="chk_overrides_dates"),
        CheckConstraint("capacity >= 1", name="chk_overrides_capacity"),
        CheckConstraint("booked_count >= 0 AND booked_count <= capacity", name="chk_overrides_booked"),
        Index("idx_overrides_slot", "time_slot_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    time_slot_id: Mapped[int] = mapped_column(ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    time_slot: Mapped["TimeSlot"] = relationship(back_populates="capacity_overrides")


class MonthlyCapacity(Base):
    __tablename__ = "time_slot_monthly_capacities"
    __table_args__ = (
        UniqueConstraint("time_slot_id", "month", name="uq_monthly_capacities"),
        CheckConstraint("capacity >= 1", name="chk_monthly_capacity"),
        CheckConstraint("booked_count >= 0 AND booked_count <= capacity", name="chk_monthly_booked"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    time_slot_id: Mapped[int] = mapped_column(ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    time_slot: Mapped["TimeSlot"] = relationship(back_populates="monthly_capacities")


class DateCapacity(Base):
    """Per-month projection of a time slot, rebuilt wholesale on every slot write."""

    __tablename__ = "date_capacities"
    __table_args__ = (
        UniqueConstraint("opportunity_id", "time_slot_id", "month", name="uq_date_capacities"),
        CheckConstraint("booked_count >= 0", name="chk_date_capacities_booked"),
        CheckConstraint("capacity >= booked_count", name="chk_date_capacities_capacity"),
        Index("idx_date_capacities_opportunity_month", "opportunity_id", "month"),
        Index("idx_date_capacities_slot", "opportunity_id", "time_slot_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    opportunity_id: Mapped[int] = mapped_column(ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False)
    time_slot_id: Mapped[int] = mapped_column(ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
