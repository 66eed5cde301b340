"""
Internal diagnostics for non-fatal hook errors.

Messages are emitted as single JSON lines on the stdlib ``cwhook.diagnostics``
logger. Emission is disabled unless ``internal_logging_enabled`` is set and
is rate limited per ``_rate_limit_key`` so a failing backend cannot flood the
application's own logs. Diagnostics never raise.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import orjson

_LOGGER_NAME = "cwhook.diagnostics"
_RATE_LIMIT_WINDOW_SECONDS = 5.0

# Cached settings lookup; reset to None by tests
_internal_logging_enabled: bool | None = None
_last_emitted: dict[str, float] = {}

logger = logging.getLogger(_LOGGER_NAME)


def _is_enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import HookSettings

            _internal_logging_enabled = bool(HookSettings().internal_logging_enabled)
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def configure(enabled: bool) -> None:
    """Override the environment-derived switch for the whole process."""
    global _internal_logging_enabled
    _internal_logging_enabled = bool(enabled)


def _rate_limited(key: str | None) -> bool:
    if key is None:
        return False
    now = time.monotonic()
    last = _last_emitted.get(key)
    if last is not None and now - last < _RATE_LIMIT_WINDOW_SECONDS:
        return True
    _last_emitted[key] = now
    return False


def _emit(level: int, component: str, message: str, fields: dict[str, Any]) -> None:
    try:
        if not _is_enabled():
            return
        if _rate_limited(fields.pop("_rate_limit_key", None)):
            return
        payload = {"component": component, "message": message, **fields}
        line = orjson.dumps(payload, default=str, option=orjson.OPT_SORT_KEYS)
        logger.log(level, line.decode("utf-8"))
    except Exception:
        # Diagnostics must never break the caller
        return


def warn(component: str, message: str, **fields: Any) -> None:
    _emit(logging.WARNING, component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    _emit(logging.DEBUG, component, message, fields)


def _reset_rate_limits() -> None:
    """Forget rate limit state (for testing only)."""
    _last_emitted.clear()
