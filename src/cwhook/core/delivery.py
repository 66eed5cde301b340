"""
Synchronous delivery path.

Used when the hook is configured with a zero batch interval: each event is
appended on its own, from the producer's task, while holding the lock that
owns the sequence token. A failed append leaves the token untouched and is
returned to the caller verbatim; this layer never retries.
"""

from __future__ import annotations

import asyncio
import time

from ..backends import LogStreamBackend
from ..metrics.metrics import MetricsCollector
from .entry import LogEvent
from .errors import AppendError


class SynchronousDelivery:
    """One-event-at-a-time appends serialized by an ``asyncio.Lock``."""

    def __init__(
        self,
        *,
        backend: LogStreamBackend,
        log_group: str,
        log_stream: str,
        sequence_token: str | None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._backend = backend
        self._log_group = log_group
        self._log_stream = log_stream
        self._sequence_token = sequence_token
        self._metrics = metrics
        self._lock = asyncio.Lock()

    @property
    def sequence_token(self) -> str | None:
        return self._sequence_token

    async def append_one(self, event: LogEvent) -> None:
        """Append a single event, advancing the token on success."""
        async with self._lock:
            start = time.perf_counter()
            try:
                next_token = await self._backend.put_log_events(
                    self._log_group,
                    self._log_stream,
                    [event],
                    self._sequence_token,
                )
            except AppendError:
                await self._record(ok=False, start=start)
                raise
            except Exception as e:
                await self._record(ok=False, start=start)
                raise AppendError(
                    f"append to {self._log_group}/{self._log_stream} failed: {e}",
                    log_group=self._log_group,
                    log_stream=self._log_stream,
                    cause=e,
                ) from e
            self._sequence_token = next_token
            await self._record(ok=True, start=start)

    async def _record(self, *, ok: bool, start: float) -> None:
        if self._metrics is None:
            return
        try:
            await self._metrics.record_append(
                path="sync",
                event_count=1,
                ok=ok,
                duration_seconds=time.perf_counter() - start,
            )
        except Exception:
            # Metrics must never change the append outcome
            pass
