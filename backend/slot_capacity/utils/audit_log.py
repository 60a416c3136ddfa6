from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "timeslot.created",
    "timeslot.updated",
    "timeslot.deleted",
    "timeslot.cancelled",
    "timeslot.capacity_adjusted",
    "timeslot.closed",
    "booking.applied",
    "booking.confirmed",
    "booking.released",
]
AuditInitiator = Literal["host", "system", "workflow"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    opportunity_id: int,
    time_slot_id: Optional[int],
    user_id: Optional[int],
    status_from: Optional[Any] = None,
    status_to: Optional[Any] = None,
    target: Optional[str] = None,
    applied_count: Optional[int] = None,
    confirmed_count: Optional[int] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "opportunity_id": opportunity_id,
        "time_slot_id": time_slot_id,
        "user_id": user_id,
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
        "target": target,
        "applied_count": applied_count,
        "confirmed_count": confirmed_count,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
