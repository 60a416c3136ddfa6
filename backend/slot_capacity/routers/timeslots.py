from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_admin_user_id, get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyDateCapacityRepository,
    SqlAlchemyOpportunityRepository,
    SqlAlchemyTimeSlotRepository,
)
from ..models import TimeSlotStatus
from ..schemas import MonthlyCapacityUpdate, StatusRefreshRead, TimeSlotCreate, TimeSlotRead, TimeSlotUpdate
from ..usecases import timeslots as timeslot_usecase
from ..utils.audit_log import emit_audit_log
from .errors import audit_failure, domain_error_to_http

router = APIRouter(prefix="", tags=["timeslots"], dependencies=[Depends(get_current_user_id)])

MONTH_PATH = Path(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$")


@router.get("/opportunities/{opportunity_id}/timeslots", response_model=List[TimeSlotRead])
async def list_timeslots(
    opportunity_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[TimeSlotRead]:
    try:
        slots = await timeslot_usecase.list_slots(
            SqlAlchemyOpportunityRepository(session),
            SqlAlchemyTimeSlotRepository(session),
            opportunity_id=opportunity_id,
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [TimeSlotRead.from_db(slot=slot) for slot in slots]


@router.get("/opportunities/{opportunity_id}/timeslots/{slot_id}", response_model=TimeSlotRead)
async def get_timeslot(
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> TimeSlotRead:
    try:
        slot = await timeslot_usecase.get_slot(
            SqlAlchemyTimeSlotRepository(session),
            opportunity_id=opportunity_id,
            slot_id=slot_id,
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return TimeSlotRead.from_db(slot=slot)


@router.post(
    "/opportunities/{opportunity_id}/timeslots",
    response_model=TimeSlotRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_timeslot(
    payload: TimeSlotCreate,
    opportunity_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> TimeSlotRead:
    definition = payload.to_definition(default_minimum_stay=get_settings().default_minimum_stay)
    async with session.begin():
        try:
            slot = await timeslot_usecase.create_slot(
                SqlAlchemyOpportunityRepository(session),
                SqlAlchemyTimeSlotRepository(session),
                SqlAlchemyDateCapacityRepository(session),
                opportunity_id=opportunity_id,
                host_id=user_id,
                definition=definition,
            )
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc
        except IntegrityError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="time slot conflicts with stored data") from exc

    try:
        emit_audit_log(
            action="timeslot.created",
            initiator="host",
            opportunity_id=opportunity_id,
            time_slot_id=slot.id,
            user_id=user_id,
            status_to=slot.status,
            extra={"start_month": slot.start_month, "end_month": slot.end_month},
        )
    except RuntimeError as exc:
        raise audit_failure() from exc
    return TimeSlotRead.from_db(slot=slot)


@router.put("/opportunities/{opportunity_id}/timeslots/{slot_id}", response_model=TimeSlotRead)
async def update_timeslot(
    payload: TimeSlotUpdate,
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> TimeSlotRead:
    definition = payload.to_definition(default_minimum_stay=get_settings().default_minimum_stay)
    async with session.begin():
        try:
            slot, previous_status = await timeslot_usecase.update_slot(
                SqlAlchemyOpportunityRepository(session),
                SqlAlchemyTimeSlotRepository(session),
                SqlAlchemyDateCapacityRepository(session),
                opportunity_id=opportunity_id,
                slot_id=slot_id,
                host_id=user_id,
                definition=definition,
                status=payload.status,
            )
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc
        except IntegrityError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="time slot conflicts with stored data") from exc

    try:
        emit_audit_log(
            action="timeslot.updated",
            initiator="host",
            opportunity_id=opportunity_id,
            time_slot_id=slot.id,
            user_id=user_id,
            status_from=previous_status,
            status_to=slot.status,
        )
    except RuntimeError as exc:
        raise audit_failure() from exc
    return TimeSlotRead.from_db(slot=slot)


@router.delete("/opportunities/{opportunity_id}/timeslots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timeslot(
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Response:
    async with session.begin():
        try:
            slot = await timeslot_usecase.delete_slot(
                SqlAlchemyOpportunityRepository(session),
                SqlAlchemyTimeSlotRepository(session),
                SqlAlchemyDateCapacityRepository(session),
                opportunity_id=opportunity_id,
                slot_id=slot_id,
                host_id=user_id,
            )
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc

    try:
        emit_audit_log(
            action="timeslot.deleted",
            initiator="host",
            opportunity_id=opportunity_id,
            time_slot_id=slot_id,
            user_id=user_id,
            status_from=slot.status,
        )
    except RuntimeError as exc:
        raise audit_failure() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/opportunities/{opportunity_id}/timeslots/{slot_id}/cancel", response_model=TimeSlotRead)
async def cancel_timeslot(
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> TimeSlotRead:
    async with session.begin():
        try:
            slot, previous_status = await timeslot_usecase.cancel_slot(
                SqlAlchemyOpportunityRepository(session),
                SqlAlchemyTimeSlotRepository(session),
                opportunity_id=opportunity_id,
                slot_id=slot_id,
                host_id=user_id,
            )
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc

    if previous_status != TimeSlotStatus.CANCELLED:
        try:
            emit_audit_log(
                action="timeslot.cancelled",
                initiator="host",
                opportunity_id=opportunity_id,
                time_slot_id=slot.id,
                user_id=user_id,
                status_from=previous_status,
                status_to=slot.status,
            )
        except RuntimeError as exc:
            raise audit_failure() from exc
    return TimeSlotRead.from_db(slot=slot)


@router.put(
    "/opportunities/{opportunity_id}/timeslots/{slot_id}/monthly-capacities/{month}",
    response_model=TimeSlotRead,
)
async def set_monthly_capacity(
    payload: MonthlyCapacityUpdate,
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    month: str = MONTH_PATH,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> TimeSlotRead:
    async with session.begin():
        try:
            slot = await timeslot_usecase.set_monthly_capacity(
                SqlAlchemyOpportunityRepository(session),
                SqlAlchemyTimeSlotRepository(session),
                SqlAlchemyDateCapacityRepository(session),
                opportunity_id=opportunity_id,
                slot_id=slot_id,
                host_id=user_id,
                month=month,
                capacity=payload.capacity,
            )
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc

    try:
        emit_audit_log(
            action="timeslot.capacity_adjusted",
            initiator="host",
            opportunity_id=opportunity_id,
            time_slot_id=slot.id,
            user_id=user_id,
            target=month,
            extra={"capacity": payload.capacity},
        )
    except RuntimeError as exc:
        raise audit_failure() from exc
    return TimeSlotRead.from_db(slot=slot)


@router.post("/admin/timeslots/refresh-status", response_model=List[StatusRefreshRead])
async def refresh_timeslot_statuses(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_admin_user_id),
) -> list[StatusRefreshRead]:
    async with session.begin():
        changed = await timeslot_usecase.refresh_statuses(SqlAlchemyTimeSlotRepository(session))

    results: list[StatusRefreshRead] = []
    for slot, previous_status in changed:
        try:
            emit_audit_log(
                action="timeslot.closed" if slot.status == TimeSlotStatus.CLOSED else "timeslot.updated",
                initiator="system",
                opportunity_id=slot.opportunity_id,
                time_slot_id=slot.id,
                user_id=user_id,
                status_from=previous_status,
                status_to=slot.status,
            )
        except RuntimeError as exc:
            raise audit_failure() from exc
        results.append(
            StatusRefreshRead(
                time_slot_id=slot.id,
                opportunity_id=slot.opportunity_id,
                status_from=previous_status,
                status_to=slot.status,
            )
        )
    return results
