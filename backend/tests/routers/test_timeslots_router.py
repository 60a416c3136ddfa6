from typing import Any, cast

import pytest
from fakes import make_slot
from fastapi import HTTPException
from fastapi.routing import APIRoute
from slot_capacity.deps import get_current_user_id
from slot_capacity.domain.errors import ConflictError, ForbiddenError, ValidationError
from slot_capacity.models import TimeSlot, TimeSlotStatus
from slot_capacity.routers import timeslots as router
from slot_capacity.schemas import MonthlyCapacityUpdate, TimeSlotCreate, TimeSlotUpdate
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    """Minimal async session stub that supports `async with session.begin()`."""

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _patch_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SqlAlchemyOpportunityRepository", "SqlAlchemyTimeSlotRepository", "SqlAlchemyDateCapacityRepository"):
        monkeypatch.setattr(router, name, lambda s: s)


def _capture_audit(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(router, "emit_audit_log", fake_emit)
    return calls


def _payload(**overrides: Any) -> TimeSlotCreate:
    fields: dict[str, Any] = {"start_month": "2024-06", "end_month": "2024-08", "default_capacity": 2}
    fields.update(overrides)
    return TimeSlotCreate(**fields)


def test_timeslot_routes_require_bearer_token() -> None:
    assert any(dep.dependency == get_current_user_id for dep in router.router.dependencies)
    for route in router.router.routes:
        if not isinstance(route, APIRoute):
            continue
        assert any(dep.call == get_current_user_id for dep in route.dependant.dependencies)


@pytest.mark.asyncio
async def test_create_timeslot_returns_slot_and_audits(monkeypatch: pytest.MonkeyPatch) -> None:
    slot = make_slot()
    seen: dict[str, Any] = {}

    async def fake_create_slot(*args: object, **kwargs: Any) -> TimeSlot:
        seen.update(kwargs)
        return slot

    _patch_repos(monkeypatch)
    calls = _capture_audit(monkeypatch)
    monkeypatch.setattr(router.timeslot_usecase, "create_slot", fake_create_slot)

    result = await router.create_timeslot(
        payload=_payload(),
        opportunity_id=1,
        session=cast(AsyncSession, DummySession()),
        user_id=7,
    )

    assert result.time_slot_id == slot.id
    assert result.status == TimeSlotStatus.OPEN
    assert seen["host_id"] == 7
    # Omitted minimum stay falls back to the configured default.
    assert seen["definition"].minimum_stay == 14
    assert calls[0]["action"] == "timeslot.created"
    assert calls[0]["initiator"] == "host"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (ValidationError("bad months"), 400),
        (ForbiddenError("not the host"), 403),
        (ConflictError("has bookings"), 409),
        (IntegrityError(None, None, Exception("dup")), 409),  # type: ignore[arg-type]
    ],
)
async def test_create_timeslot_maps_errors(monkeypatch: pytest.MonkeyPatch, error: Exception, status_code: int) -> None:
    async def fake_create_slot(*args: object, **kwargs: object) -> TimeSlot:
        raise error

    _patch_repos(monkeypatch)
    calls = _capture_audit(monkeypatch)
    monkeypatch.setattr(router.timeslot_usecase, "create_slot", fake_create_slot)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_timeslot(
            payload=_payload(), opportunity_id=1, session=cast(AsyncSession, DummySession()), user_id=7
        )
    assert excinfo.value.status_code == status_code
    assert calls == []


@pytest.mark.asyncio
async def test_update_timeslot_audits_status_transition(monkeypatch: pytest.MonkeyPatch) -> None:
    slot = make_slot(status=TimeSlotStatus.CANCELLED)

    async def fake_update_slot(*args: object, **kwargs: Any) -> tuple[TimeSlot, TimeSlotStatus]:
        assert kwargs["status"] == TimeSlotStatus.CANCELLED
        return slot, TimeSlotStatus.OPEN

    _patch_repos(monkeypatch)
    calls = _capture_audit(monkeypatch)
    monkeypatch.setattr(router.timeslot_usecase, "update_slot", fake_update_slot)

    payload = TimeSlotUpdate(start_month="2024-06", end_month="2024-08", default_capacity=2, status=TimeSlotStatus.CANCELLED)
    result = await router.update_timeslot(
        payload=payload, opportunity_id=1, slot_id=1, session=cast(AsyncSession, DummySession()), user_id=7
    )

    assert result.status == TimeSlotStatus.CANCELLED
    assert calls[0]["status_from"] == TimeSlotStatus.OPEN
    assert calls[0]["status_to"] == TimeSlotStatus.CANCELLED


@pytest.mark.asyncio
async def test_delete_timeslot_returns_204(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_delete_slot(*args: object, **kwargs: object) -> TimeSlot:
        return make_slot()

    _patch_repos(monkeypatch)
    calls = _capture_audit(monkeypatch)
    monkeypatch.setattr(router.timeslot_usecase, "delete_slot", fake_delete_slot)

    response = await router.delete_timeslot(
        opportunity_id=1, slot_id=1, session=cast(AsyncSession, DummySession()), user_id=7
    )
    assert response.status_code == 204
    assert calls[0]["action"] == "timeslot.deleted"


@pytest.mark.asyncio
async def test_cancel_already_cancelled_slot_skips_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    slot = make_slot(status=TimeSlotStatus.CANCELLED)

    async def fake_cancel_slot(*args: object, **kwargs: object) -> tuple[TimeSlot, TimeSlotStatus]:
        return slot, TimeSlotStatus.CANCELLED

    _patch_repos(monkeypatch)
    calls = _capture_audit(monkeypatch)
    monkeypatch.setattr(router.timeslot_usecase, "cancel_slot", fake_cancel_slot)

    result = await router.cancel_timeslot(opportunity_id=1, slot_id=1, session=cast(AsyncSession, DummySession()), user_id=7)
    assert result.status == TimeSlotStatus.CANCELLED
    assert calls == []


@pytest.mark.asyncio
async def test_set_monthly_capacity_audits_adjustment(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_set_monthly_capacity(*args: object, **kwargs: Any) -> TimeSlot:
        assert kwargs["month"] == "2024-07"
        return make_slot(monthly={"2024-07": (kwargs["capacity"], 0)})

    _patch_repos(monkeypatch)
    calls = _capture_audit(monkeypatch)
    monkeypatch.setattr(router.timeslot_usecase, "set_monthly_capacity", fake_set_monthly_capacity)

    result = await router.set_monthly_capacity(
        payload=MonthlyCapacityUpdate(capacity=5),
        opportunity_id=1,
        slot_id=1,
        month="2024-07",
        session=cast(AsyncSession, DummySession()),
        user_id=7,
    )
    assert result.monthly_capacities[0].capacity == 5
    assert calls[0]["action"] == "timeslot.capacity_adjusted"
    assert calls[0]["extra"] == {"capacity": 5}


@pytest.mark.asyncio
async def test_audit_failure_is_500(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_cancel_slot(*args: object, **kwargs: object) -> tuple[TimeSlot, TimeSlotStatus]:
        return make_slot(status=TimeSlotStatus.CANCELLED), TimeSlotStatus.OPEN

    def failing_emit(**kwargs: Any) -> None:
        raise RuntimeError("failed to emit audit log")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router, "emit_audit_log", failing_emit)
    monkeypatch.setattr(router.timeslot_usecase, "cancel_slot", fake_cancel_slot)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_timeslot(opportunity_id=1, slot_id=1, session=cast(AsyncSession, DummySession()), user_id=7)
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_refresh_status_reports_closed_slots(monkeypatch: pytest.MonkeyPatch) -> None:
    closed = make_slot(slot_id=3, status=TimeSlotStatus.CLOSED)

    async def fake_refresh(*args: object, **kwargs: object) -> list[tuple[TimeSlot, TimeSlotStatus]]:
        return [(closed, TimeSlotStatus.FILLED)]

    _patch_repos(monkeypatch)
    calls = _capture_audit(monkeypatch)
    monkeypatch.setattr(router.timeslot_usecase, "refresh_statuses", fake_refresh)

    results = await router.refresh_timeslot_statuses(session=cast(AsyncSession, DummySession()), user_id=7)

    assert [(r.time_slot_id, r.status_from, r.status_to) for r in results] == [
        (3, TimeSlotStatus.FILLED, TimeSlotStatus.CLOSED)
    ]
    assert calls[0]["action"] == "timeslot.closed"
    assert calls[0]["initiator"] == "system"
