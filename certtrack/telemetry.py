"""Structured telemetry events for cache refreshes, imports and profile writes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("certtrack.telemetry")

CACHE_REFRESH_COMPLETED = "cache_refresh_completed"
CREDENTIAL_FETCH_FAILED = "credential_fetch_failed"
PROFILE_SAVED = "profile_saved"
PROFILE_WRITE_REJECTED = "profile_write_rejected"
CSV_IMPORT_COMPLETED = "csv_import_completed"


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


TelemetryListener = Callable[[TelemetryEvent], None]

_listeners: List[TelemetryListener] = []
_lock = RLock()


def register_listener(listener: TelemetryListener) -> None:
    """Register an in-process listener (used by tests and the operator script)."""
    with _lock:
        _listeners.append(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Fan an event out to listeners, then log it as a single JSON line."""
    payload = {key: _plain(value) for key, value in fields.items()}
    event = TelemetryEvent(name=name, payload=payload)

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **payload}, default=str))


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value


__all__ = [
    "CACHE_REFRESH_COMPLETED",
    "CREDENTIAL_FETCH_FAILED",
    "CSV_IMPORT_COMPLETED",
    "PROFILE_SAVED",
    "PROFILE_WRITE_REJECTED",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
