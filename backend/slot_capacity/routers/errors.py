"""Translate engine errors into HTTP responses so routes stay thin."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from ..domain.errors import (
    CapacityExceededError,
    ConflictError,
    DomainError,
    ForbiddenError,
    MaterializationError,
    NotFoundError,
    SlotNotOpenError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# First match wins; subclasses must come before their bases.
ERROR_STATUS: list[tuple[type[DomainError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (SlotNotOpenError, status.HTTP_409_CONFLICT),
    (CapacityExceededError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (MaterializationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def domain_error_to_http(exc: DomainError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            if status_code >= 500:
                logger.error("scheduling engine failure: %s", exc)
            return HTTPException(status_code=status_code, detail=str(exc))
    logger.error("unmapped domain error: %r", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")


def audit_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to record audit log")
