from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyDateCapacityRepository,
    SqlAlchemyOpportunityRepository,
    SqlAlchemyTimeSlotRepository,
)
from ..schemas import MonthAvailabilityRead, MonthSelectionRead, MonthSelectionRequest
from ..usecases import availability as availability_usecase
from .errors import domain_error_to_http

router = APIRouter(prefix="/opportunities", tags=["availability"])


@router.get("/{opportunity_id}/availability", response_model=List[MonthAvailabilityRead])
async def get_availability(
    opportunity_id: int = Path(..., ge=1),
    start_month: str = Query(..., description="First month, YYYY-MM"),
    end_month: str = Query(..., description="Last month, YYYY-MM (inclusive)"),
    time_slot_id: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[MonthAvailabilityRead]:
    try:
        items = await availability_usecase.query_availability(
            SqlAlchemyOpportunityRepository(session),
            SqlAlchemyTimeSlotRepository(session),
            SqlAlchemyDateCapacityRepository(session),
            opportunity_id=opportunity_id,
            start_month=start_month,
            end_month=end_month,
            time_slot_id=time_slot_id,
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [MonthAvailabilityRead.from_domain(item=item) for item in items]


@router.post("/{opportunity_id}/availability/month-selection", response_model=MonthSelectionRead)
async def check_month_selection(
    payload: MonthSelectionRequest,
    opportunity_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> MonthSelectionRead:
    try:
        selection = await availability_usecase.validate_month_selection(
            SqlAlchemyOpportunityRepository(session),
            SqlAlchemyTimeSlotRepository(session),
            opportunity_id=opportunity_id,
            months=payload.months,
            time_slot_id=payload.time_slot_id,
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return MonthSelectionRead.from_domain(selection=selection)
