"""
Error channel between the flush loop and producer calls.

The flush loop publishes a ``FlushFailure`` whenever an append of the
accumulated batch fails; ``fire`` polls the channel without blocking and
raises the oldest pending failure. The channel is bounded: once it holds
``capacity`` failures, publishing a new one overwrites the oldest. With the
default capacity of one, two failures in a row before any producer polls
leave only the newest observable. Overwrites are counted and reported
through diagnostics.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from . import diagnostics


@dataclass(frozen=True)
class FlushFailure:
    """Outcome of a failed flush attempt."""

    flush_id: int
    event_count: int
    error: Exception


class ErrorChannel:
    """Bounded, non-blocking, overwrite-oldest failure mailbox.

    Only the flush loop publishes and only producers poll, all on one event
    loop, so no locking is required.
    """

    def __init__(self, capacity: int = 1) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._pending: deque[FlushFailure] = deque(maxlen=capacity)
        self._overwritten = 0

    @property
    def capacity(self) -> int:
        return self._pending.maxlen or 0

    @property
    def overwritten(self) -> int:
        """Number of failures lost because nobody polled in time."""
        return self._overwritten

    def __len__(self) -> int:
        return len(self._pending)

    def publish(self, failure: FlushFailure) -> bool:
        """Record a failure; returns True if an older failure was overwritten."""
        lost = len(self._pending) == self._pending.maxlen
        if lost:
            dropped = self._pending[0]
            self._overwritten += 1
            diagnostics.warn(
                "error-channel",
                "unobserved flush failure overwritten",
                flush_id=dropped.flush_id,
                event_count=dropped.event_count,
                error=str(dropped.error),
            )
        self._pending.append(failure)
        return lost

    def poll(self) -> FlushFailure | None:
        """Return and remove the oldest pending failure, if any."""
        if not self._pending:
            return None
        return self._pending.popleft()
