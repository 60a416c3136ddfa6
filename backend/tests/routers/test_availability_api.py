from typing import Any, AsyncIterator, Iterator

import pytest
from fastapi.testclient import TestClient
from slot_capacity.config import get_settings
from slot_capacity.deps import get_session
from slot_capacity.domain.availability import MonthAvailability, MonthSelection, SlotMonth
from slot_capacity.domain.errors import ValidationError
from slot_capacity.main import app
from slot_capacity.routers import availability as router
from slot_capacity.routers import timeslots as timeslots_router
from slot_capacity.utils.auth import create_access_token


async def _no_session() -> AsyncIterator[None]:
    yield None


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    for name in ("SqlAlchemyOpportunityRepository", "SqlAlchemyTimeSlotRepository", "SqlAlchemyDateCapacityRepository"):
        monkeypatch.setattr(router, name, lambda s: s)
    app.dependency_overrides[get_session] = _no_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_availability_is_public_and_lists_months(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_query(*args: object, **kwargs: Any) -> list[MonthAvailability]:
        assert kwargs["start_month"] == "2024-06"
        assert kwargs["time_slot_id"] is None
        return [
            MonthAvailability(month="2024-06"),
            MonthAvailability(month="2024-07", capacity=2, booked_count=1, slots=(SlotMonth(1, 2, 1),)),
        ]

    monkeypatch.setattr(router.availability_usecase, "query_availability", fake_query)

    resp = client.get("/opportunities/1/availability", params={"start_month": "2024-06", "end_month": "2024-07"})

    assert resp.status_code == 200
    body = resp.json()
    assert body[0] == {"month": "2024-06", "capacity": 0, "booked_count": 0, "available": 0, "is_available": False, "slots": []}
    assert body[1]["available"] == 1
    assert body[1]["slots"] == [{"time_slot_id": 1, "capacity": 2, "booked_count": 1, "available": 1}]
    assert resp.headers["X-Request-ID"]


def test_availability_bad_range_is_400(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_query(*args: object, **kwargs: object) -> list[MonthAvailability]:
        raise ValidationError("end_month must not be earlier than start_month")

    monkeypatch.setattr(router.availability_usecase, "query_availability", fake_query)

    resp = client.get("/opportunities/1/availability", params={"start_month": "2024-08", "end_month": "2024-06"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "end_month must not be earlier than start_month"


def test_month_selection_endpoint(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_validate(*args: object, **kwargs: Any) -> MonthSelection:
        assert kwargs["months"] == ["2024-06", "2024-07"]
        return MonthSelection(True, None, (1,))

    monkeypatch.setattr(router.availability_usecase, "validate_month_selection", fake_validate)

    resp = client.post("/opportunities/1/availability/month-selection", json={"months": ["2024-06", "2024-07"]})
    assert resp.status_code == 200
    assert resp.json() == {"is_valid": True, "error": None, "time_slot_ids": [1]}


def test_timeslot_routes_reject_missing_token(client: TestClient) -> None:
    resp = client.get("/opportunities/1/timeslots")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


class _Transaction:
    async def __aenter__(self) -> None:
        return None

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


class _TransactionalSession:
    def begin(self) -> _Transaction:
        return _Transaction()


async def _transactional_session() -> AsyncIterator[_TransactionalSession]:
    yield _TransactionalSession()


def test_status_refresh_route_requires_admin_role(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_refresh(*args: object, **kwargs: object) -> list[object]:
        return []

    monkeypatch.setattr(timeslots_router, "SqlAlchemyTimeSlotRepository", lambda s: s)
    monkeypatch.setattr(timeslots_router.timeslot_usecase, "refresh_statuses", fake_refresh)
    app.dependency_overrides[get_session] = _transactional_session
    secret = get_settings().auth_secret
    host = create_access_token(user_id=7, secret=secret)
    admin = create_access_token(user_id=1, secret=secret, extra_claims={"role": "admin"})

    denied = client.post("/admin/timeslots/refresh-status", headers={"Authorization": f"Bearer {host}"})
    assert denied.status_code == 403

    allowed = client.post("/admin/timeslots/refresh-status", headers={"Authorization": f"Bearer {admin}"})
    assert allowed.status_code == 200
    assert allowed.json() == []
