"""
Fixed JSON formatting of log entries into stream messages.

Each entry becomes one JSON object with sorted keys:

    {"level": "INFO", "msg": "user created", "time": "2024-...", "user": "u1"}

Fields that would shadow ``level``, ``msg`` or ``time`` are kept under a
``fields.`` prefix. If an entry also carries a field literally named, say,
``fields.msg``, the two share one key and whichever comes later in
``entry.fields`` wins. Serialization uses orjson and never goes through an
intermediate ``dict -> str -> bytes`` copy of the whole payload.
"""

from __future__ import annotations

from typing import Any

import orjson

from .entry import LogEntry, LogEvent
from .errors import (
    ErrorCategory,
    ErrorSeverity,
    SerializationError,
    create_error_context,
)

RESERVED_KEYS: frozenset[str] = frozenset({"level", "msg", "time"})


def _default(obj: Any) -> Any:
    """Default serializer hook for types orjson does not know natively.

    Keep minimal; prefer upstream objects to be plain JSON types already.
    """
    if isinstance(obj, BaseException):
        return str(obj) or type(obj).__name__
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_none=True)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def build_payload(entry: LogEntry) -> dict[str, Any]:
    """JSON-ready mapping for ``entry``; on key collisions the later field wins."""
    payload: dict[str, Any] = {}
    for key, value in entry.fields.items():
        if key in RESERVED_KEYS:
            payload[f"fields.{key}"] = value
        else:
            payload[key] = value
    moment = entry.time if entry.time.tzinfo is not None else entry.time.astimezone()
    payload["level"] = entry.level
    payload["msg"] = entry.message
    payload["time"] = moment.isoformat()
    return payload


def serialize_entry(entry: LogEntry) -> bytes:
    """Serialize an entry to JSON bytes, raising SerializationError on failure."""
    try:
        return orjson.dumps(
            build_payload(entry),
            default=_default,
            option=orjson.OPT_SORT_KEYS,
        )
    except TypeError as e:
        context = create_error_context(
            ErrorCategory.SERIALIZATION,
            ErrorSeverity.MEDIUM,
            level=entry.level,
        )
        raise SerializationError(
            "Log entry serialization failed",
            error_context=context,
            cause=e,
        ) from e


def format_entry(entry: LogEntry) -> LogEvent:
    """Turn an incoming entry into the immutable event sent to the backend."""
    return LogEvent(
        message=serialize_entry(entry).decode("utf-8"),
        timestamp_millis=entry.timestamp_millis,
    )
