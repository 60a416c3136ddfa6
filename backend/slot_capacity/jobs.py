"""
Periodic status refresh: run once a day (cron or any scheduler) shortly after
local midnight so slots whose end month has passed move to CLOSED.

    python -m slot_capacity.jobs
"""
import asyncio
import logging

from .database import async_session
from .infrastructure.repositories import SqlAlchemyTimeSlotRepository
from .models import TimeSlotStatus
from .usecases import timeslots as timeslot_usecase
from .utils.audit_log import emit_audit_log

logger = logging.getLogger(__name__)


async def run_status_refresh_job() -> int:
    async with async_session() as session:
        async with session.begin():
            changed = await timeslot_usecase.refresh_statuses(SqlAlchemyTimeSlotRepository(session))

    for slot, previous_status in changed:
        emit_audit_log(
            action="timeslot.closed" if slot.status == TimeSlotStatus.CLOSED else "timeslot.updated",
            initiator="system",
            opportunity_id=slot.opportunity_id,
            time_slot_id=slot.id,
            user_id=None,
            status_from=previous_status,
            status_to=slot.status,
        )
    logger.info("status refresh job changed %s time slot(s)", len(changed))
    return len(changed)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    asyncio.run(run_status_refresh_job())


if __name__ == "__main__":
    main()
