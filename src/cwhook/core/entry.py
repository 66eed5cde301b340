"""
Entry types flowing through the hook.

``LogEntry`` is what the logging framework hands to ``fire``: a level, a
message, a time and structured fields. ``LogEvent`` is what the backend
receives: the formatted message plus a millisecond timestamp. A LogEvent is
immutable and is consumed exactly once by whichever delivery path is active.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from .levels import canonical_level

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MILLISECOND = timedelta(milliseconds=1)


def to_epoch_millis(moment: datetime) -> int:
    """Milliseconds since the Unix epoch; naive datetimes are local time."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return (moment - _EPOCH) // _ONE_MILLISECOND


@dataclass
class LogEntry:
    """A structured log entry produced by the application's logger."""

    level: str
    message: str
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.level = canonical_level(self.level)

    @property
    def timestamp_millis(self) -> int:
        return to_epoch_millis(self.time)


@dataclass(frozen=True)
class LogEvent:
    """A formatted event ready to be appended to a log stream."""

    message: str
    timestamp_millis: int

    def to_request(self) -> dict[str, Any]:
        """Shape used by the CloudWatch Logs ``PutLogEvents`` API."""
        return {"timestamp": self.timestamp_millis, "message": self.message}
