from typing import Any, AsyncIterator

from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .utils.auth import ADMIN_ROLE, decode_access_claims, extract_bearer_token, has_role


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _verified_claims(authorization: str | None) -> dict[str, Any]:
    token = extract_bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="bearer token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    settings = get_settings()
    try:
        return decode_access_claims(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


async def get_current_user_id(authorization: str | None = Header(default=None)) -> int:
    """Caller identity from the bearer token issued by the platform's auth service."""
    return int(_verified_claims(authorization)["sub"])


async def get_admin_user_id(authorization: str | None = Header(default=None)) -> int:
    """Like ``get_current_user_id`` but only for tokens carrying the platform admin role."""
    claims = _verified_claims(authorization)
    if not has_role(claims, ADMIN_ROLE):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin role required")
    return int(claims["sub"])
