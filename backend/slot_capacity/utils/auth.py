"""Bearer tokens issued by the platform's identity service. Only the subject (user id) is used here."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

import jwt
from jwt import InvalidTokenError

BEARER_SCHEME = "bearer"
ADMIN_ROLE = "admin"
DEFAULT_TOKEN_TTL = timedelta(minutes=30)


def create_access_token(
    *,
    user_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
    extra_claims: Optional[dict[str, Any]] = None,
) -> str:
    """Mint a token shaped like the identity service's; used by tests and local tooling."""
    issued_at = datetime.now(timezone.utc)
    claims: dict[str, Any] = dict(extra_claims or {})
    claims.update(
        sub=str(user_id),
        iat=issued_at,
        exp=issued_at + (expires_delta or DEFAULT_TOKEN_TTL),
    )
    return jwt.encode(claims, secret, algorithm=algorithm)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_SCHEME or not token:
        return None
    return token


def decode_access_claims(token: str, *, secret: str, algorithms: Sequence[str]) -> dict[str, Any]:
    """Verified claims of ``token``. Raises ValueError for anything unusable."""
    try:
        claims = jwt.decode(token, secret, algorithms=list(algorithms), options={"require": ["exp", "sub"]})
    except InvalidTokenError as exc:
        raise ValueError("invalid token") from exc

    if not str(claims["sub"]).isdigit():
        raise ValueError("token subject is not a user id")
    return claims


def has_role(claims: dict[str, Any], role: str) -> bool:
    return claims.get("role") == role
