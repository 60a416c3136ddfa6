from fakes import make_opportunity, make_slot
from slot_capacity.domain.status import derive_opportunity, derive_slot, derive_status
from slot_capacity.models import TimeSlotStatus


def _derive(current: TimeSlotStatus, applied: int, *, end_month: str = "2024-08", now: str = "2024-06") -> TimeSlotStatus:
    return derive_status(current, applied_count=applied, default_capacity=5, end_month=end_month, current_month=now)


def test_open_until_applications_reach_default_capacity() -> None:
    assert _derive(TimeSlotStatus.OPEN, 4) == TimeSlotStatus.OPEN
    assert _derive(TimeSlotStatus.OPEN, 5) == TimeSlotStatus.FILLED


def test_filled_reopens_when_applications_drop() -> None:
    assert _derive(TimeSlotStatus.FILLED, 4) == TimeSlotStatus.OPEN


def test_closes_once_end_month_has_passed() -> None:
    assert _derive(TimeSlotStatus.OPEN, 0, now="2024-09") == TimeSlotStatus.CLOSED
    assert _derive(TimeSlotStatus.FILLED, 5, now="2024-09") == TimeSlotStatus.CLOSED
    # The end month itself is still bookable.
    assert _derive(TimeSlotStatus.OPEN, 0, now="2024-08") == TimeSlotStatus.OPEN


def test_closed_and_cancelled_never_revert_automatically() -> None:
    assert _derive(TimeSlotStatus.CLOSED, 0) == TimeSlotStatus.CLOSED
    assert _derive(TimeSlotStatus.CANCELLED, 0) == TimeSlotStatus.CANCELLED
    assert _derive(TimeSlotStatus.CANCELLED, 5, now="2024-09") == TimeSlotStatus.CANCELLED


def test_derive_slot_reports_change() -> None:
    slot = make_slot(default_capacity=2, applied_count=2)
    assert derive_slot(slot, current_month="2024-06") is True
    assert slot.status == TimeSlotStatus.FILLED
    assert derive_slot(slot, current_month="2024-06") is False


def test_derive_opportunity_tracks_slot_presence() -> None:
    opportunity = make_opportunity()
    derive_opportunity(opportunity)
    assert opportunity.has_time_slots is False

    opportunity.time_slots.append(make_slot())
    derive_opportunity(opportunity)
    assert opportunity.has_time_slots is True
