import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import CapacityExceededError, DomainError
from ..infrastructure.repositories import SqlAlchemyDateCapacityRepository, SqlAlchemyTimeSlotRepository
from ..schemas import BookingRead, BookingRelease, BookingRequest
from ..usecases import bookings as booking_usecase
from ..usecases.bookings import BookingResult
from ..utils.audit_log import AuditAction, emit_audit_log
from .errors import audit_failure, domain_error_to_http

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/opportunities/{opportunity_id}/timeslots/{slot_id}/bookings",
    tags=["bookings"],
    dependencies=[Depends(get_current_user_id)],
)


def _audit(action: AuditAction, *, opportunity_id: int, user_id: int, result: BookingResult) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator="workflow",
            opportunity_id=opportunity_id,
            time_slot_id=result.slot.id,
            user_id=user_id,
            status_from=result.previous_status,
            status_to=result.slot.status,
            target=str(result.target.day or result.target.month),
            applied_count=result.slot.applied_count,
            confirmed_count=result.slot.confirmed_count,
        )
    except RuntimeError as exc:
        raise audit_failure() from exc


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def apply_booking(
    payload: BookingRequest,
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    async with session.begin():
        try:
            result = await booking_usecase.apply_booking(
                SqlAlchemyTimeSlotRepository(session),
                SqlAlchemyDateCapacityRepository(session),
                opportunity_id=opportunity_id,
                slot_id=slot_id,
                target=payload.target,
            )
        except CapacityExceededError as exc:
            logger.debug("booking rejected for time_slot=%s target=%s: %s", slot_id, payload.target, exc)
            raise domain_error_to_http(exc) from exc
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc
        except IntegrityError as exc:
            # Check constraints caught a write that slipped past the locked check.
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="capacity exceeded") from exc

    _audit("booking.applied", opportunity_id=opportunity_id, user_id=user_id, result=result)
    return BookingRead.from_result(result=result)


@router.post("/confirm", response_model=BookingRead)
async def confirm_booking(
    payload: BookingRequest,
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    async with session.begin():
        try:
            result = await booking_usecase.confirm_booking(
                SqlAlchemyTimeSlotRepository(session),
                opportunity_id=opportunity_id,
                slot_id=slot_id,
                target=payload.target,
            )
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc
        except IntegrityError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="booking counters conflict") from exc

    _audit("booking.confirmed", opportunity_id=opportunity_id, user_id=user_id, result=result)
    return BookingRead.from_result(result=result)


@router.post("/release", response_model=BookingRead)
async def release_booking(
    payload: BookingRelease,
    opportunity_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    async with session.begin():
        try:
            result = await booking_usecase.release_booking(
                SqlAlchemyTimeSlotRepository(session),
                SqlAlchemyDateCapacityRepository(session),
                opportunity_id=opportunity_id,
                slot_id=slot_id,
                target=payload.target,
                was_confirmed=payload.was_confirmed,
            )
        except DomainError as exc:
            raise domain_error_to_http(exc) from exc
        except IntegrityError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="booking counters conflict") from exc

    _audit("booking.released", opportunity_id=opportunity_id, user_id=user_id, result=result)
    return BookingRead.from_result(result=result)
