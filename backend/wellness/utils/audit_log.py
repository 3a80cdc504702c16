from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "booking.created",
    "booking.rejected",
    "booking.cancelled",
    "program.created",
    "program.updated",
    "program.deleted",
]
AuditInitiator = Literal["user", "admin", "system"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _to_json_value(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    company_id: Optional[int],
    user_id: Optional[str],
    program_id: Optional[int] = None,
    booking_id: Optional[int] = None,
    booking_date: Optional[date] = None,
    slot: Optional[str] = None,
    status_from: Any = None,
    status_to: Any = None,
    error_kind: Any = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit one structured JSON audit line. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "company_id": company_id,
        "user_id": user_id,
        "program_id": program_id,
        "booking_id": booking_id,
        "booking_date": _to_json_value(booking_date),
        "slot": slot,
        "status_from": _to_json_value(status_from),
        "status_to": _to_json_value(status_to),
        "error_kind": _to_json_value(error_kind),
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update({k: _to_json_value(v) for k, v in extra.items()})

    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
