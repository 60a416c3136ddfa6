from datetime import date

import pytest
from fakes import make_slot
from slot_capacity.domain.capacity import resolve, winning_override
from slot_capacity.models import CapacityOverride


def _override(start: date, end: date, capacity: int, booked: int = 0, position: int = 0) -> CapacityOverride:
    return CapacityOverride(position=position, start_date=start, end_date=end, capacity=capacity, booked_count=booked)


def test_month_without_entry_falls_back_to_default() -> None:
    slot = make_slot(default_capacity=2)
    view = resolve(slot, "2024-07")
    assert (view.capacity, view.booked_count, view.available, view.source) == (2, 0, 2, "default")


def test_monthly_entry_beats_default() -> None:
    slot = make_slot(default_capacity=2, monthly={"2024-07": (5, 3)})
    view = resolve(slot, "2024-07")
    assert (view.capacity, view.booked_count, view.source) == (5, 3, "monthly")
    assert view.is_available


def test_override_beats_month_for_covered_dates() -> None:
    slot = make_slot(default_capacity=2, monthly={"2024-07": (2, 0)})
    slot.capacity_overrides.append(_override(date(2024, 7, 10), date(2024, 7, 20), 1))

    covered = resolve(slot, date(2024, 7, 15))
    assert (covered.capacity, covered.source) == (1, "override")

    outside = resolve(slot, date(2024, 7, 25))
    assert (outside.capacity, outside.source) == (2, "monthly")


def test_month_target_ignores_overrides() -> None:
    slot = make_slot(default_capacity=2)
    slot.capacity_overrides.append(_override(date(2024, 7, 1), date(2024, 7, 31), 1))
    assert resolve(slot, "2024-07").capacity == 2


def test_override_bounds_are_inclusive() -> None:
    slot = make_slot()
    slot.capacity_overrides.append(_override(date(2024, 7, 10), date(2024, 7, 20), 1))
    assert resolve(slot, date(2024, 7, 10)).source == "override"
    assert resolve(slot, date(2024, 7, 20)).source == "override"
    assert resolve(slot, date(2024, 7, 21)).source == "default"


def test_overlapping_overrides_lowest_capacity_wins() -> None:
    slot = make_slot()
    slot.capacity_overrides.extend(
        [
            _override(date(2024, 7, 1), date(2024, 7, 31), 4, position=0),
            _override(date(2024, 7, 10), date(2024, 7, 20), 1, position=1),
            _override(date(2024, 7, 12), date(2024, 7, 14), 3, position=2),
        ]
    )
    winner = winning_override(slot, date(2024, 7, 13))
    assert winner is not None and winner.capacity == 1


def test_overlapping_overrides_tie_keeps_earliest() -> None:
    slot = make_slot()
    first = _override(date(2024, 7, 1), date(2024, 7, 31), 2, booked=1, position=0)
    second = _override(date(2024, 7, 10), date(2024, 7, 20), 2, position=1)
    slot.capacity_overrides.extend([first, second])
    assert winning_override(slot, date(2024, 7, 15)) is first


def test_resolve_rejects_malformed_month() -> None:
    with pytest.raises(ValueError):
        resolve(make_slot(), "2024-7")


def test_resolve_does_not_mutate_slot() -> None:
    slot = make_slot(monthly={"2024-07": (2, 1)})
    resolve(slot, "2024-08")
    assert [entry.month for entry in slot.monthly_capacities] == ["2024-07"]


def test_override_date_is_bounded_by_its_month() -> None:
    slot = make_slot(default_capacity=2, monthly={"2024-07": (2, 2)})
    slot.capacity_overrides.append(_override(date(2024, 7, 10), date(2024, 7, 20), 3))

    view = resolve(slot, date(2024, 7, 15))

    assert (view.capacity, view.booked_count, view.source) == (3, 0, "override")
    assert (view.month_capacity, view.month_booked_count) == (2, 2)
    assert view.available == 0
    assert not view.is_available


def test_override_date_without_month_entry_uses_default_month() -> None:
    slot = make_slot(default_capacity=4)
    slot.capacity_overrides.append(_override(date(2024, 7, 10), date(2024, 7, 20), 1))
    view = resolve(slot, date(2024, 7, 15))
    assert (view.month_capacity, view.month_booked_count, view.available) == (4, 0, 1)
