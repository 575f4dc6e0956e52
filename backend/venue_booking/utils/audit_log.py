from __future__ import annotations

import json
import logging
from datetime import timezone
from enum import Enum
from typing import Any, Optional

from ..domain.events import LifecycleEvent
from .request_context import get_request_id

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
_audit_logger.propagate = False
if not _audit_logger.handlers:
    _stream = logging.StreamHandler()
    _stream.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(_stream)


def _plain(value: Any) -> Optional[str]:
    if isinstance(value, Enum):
        return str(value.value)
    return value


def audit_record(event: LifecycleEvent) -> dict[str, Any]:
    """Flat, JSON-ready view of an event; absent fields are left out."""
    record: dict[str, Any] = {
        "timestamp": event.occurred_at.replace(tzinfo=timezone.utc).isoformat(),
        "level": "info",
        "action": event.action,
        "request_id": get_request_id(),
        "reservation_id": event.reservation_id,
        "venue_id": event.venue_id,
        "actor_id": event.actor_id,
        "series_id": event.series_id,
        "status_from": _plain(event.status_from),
        "status_to": _plain(event.status),
        "reason": event.reason,
    }
    return {key: value for key, value in record.items() if value is not None}


def emit_audit_log(event: LifecycleEvent) -> None:
    """Event-bus subscriber writing one JSON line per lifecycle event. Raises RuntimeError if logging fails."""
    line = json.dumps(audit_record(event), ensure_ascii=True)
    try:
        _audit_logger.info(line)
    except Exception as exc:
        raise RuntimeError(f"failed to emit audit log for reservation {event.reservation_id}") from exc
