from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from ..core.entry import LogEvent


@runtime_checkable
class LogStreamBackend(Protocol):
    """Append-only, sequence-token-gated log stream service.

    Implementations translate their transport errors into ``AppendError``.
    Every call must complete in finite time; the hook does not add timeouts
    of its own around backend calls.
    """

    async def describe_sequence_token(
        self, log_group: str, log_stream: str
    ) -> str | None:
        """Upload token of an existing stream, or None for a new one."""
        ...

    async def put_log_events(
        self,
        log_group: str,
        log_stream: str,
        events: Sequence[LogEvent],
        sequence_token: str | None,
    ) -> str | None:
        """Append ``events`` in order and return the next sequence token."""
        ...


@runtime_checkable
class StreamCreatingBackend(LogStreamBackend, Protocol):
    async def ensure_log_stream(self, log_group: str, log_stream: str) -> None:
        """Create the stream, treating "already exists" as success."""
        ...


__all__ = ["LogStreamBackend", "StreamCreatingBackend"]
