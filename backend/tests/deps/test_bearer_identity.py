from datetime import timedelta
from typing import Iterator

import pytest
from fastapi import HTTPException
from slot_capacity.config import Settings, get_settings
from slot_capacity.deps import get_admin_user_id, get_current_user_id
from slot_capacity.utils.auth import create_access_token, extract_bearer_token


@pytest.fixture(autouse=True)
def _set_auth_secret(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.mark.asyncio
async def test_get_current_user_id_accepts_valid_token() -> None:
    settings = Settings(auth_secret="testsecret")
    token = create_access_token(user_id=123, secret=settings.auth_secret, algorithm=settings.auth_algorithm)
    assert await get_current_user_id(authorization=f"Bearer {token}") == 123


@pytest.mark.asyncio
async def test_get_current_user_id_rejects_missing_header() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(authorization=None)
    assert excinfo.value.status_code == 401
    assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.asyncio
async def test_get_current_user_id_rejects_expired_token() -> None:
    token = create_access_token(user_id=1, secret="testsecret", expires_delta=timedelta(seconds=-1))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(authorization=f"Bearer {token}")
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_current_user_id_rejects_foreign_signature() -> None:
    token = create_access_token(user_id=1, secret="someone-else")
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(authorization=f"Bearer {token}")
    assert excinfo.value.status_code == 401


def test_extract_bearer_token_variants() -> None:
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer  abc ") == "abc"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer ") is None
    assert extract_bearer_token(None) is None


@pytest.mark.asyncio
async def test_admin_identity_requires_admin_role() -> None:
    admin = create_access_token(user_id=9, secret="testsecret", extra_claims={"role": "admin"})
    assert await get_admin_user_id(authorization=f"Bearer {admin}") == 9

    host = create_access_token(user_id=7, secret="testsecret", extra_claims={"role": "host"})
    with pytest.raises(HTTPException) as excinfo:
        await get_admin_user_id(authorization=f"Bearer {host}")
    assert excinfo.value.status_code == 403

    with pytest.raises(HTTPException) as excinfo:
        await get_admin_user_id(authorization=None)
    assert excinfo.value.status_code == 401
