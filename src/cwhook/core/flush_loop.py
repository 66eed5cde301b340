"""
Background flush loop for the batching delivery path.

The loop is the single owner of the batch and of the sequence token; no
other task reads or writes either, so neither needs a lock. Each iteration
waits on two sources at once, the batching queue and the tick inbox:

- an event is appended to the in-memory batch (no I/O)
- a tick first pulls whatever is still queued into the batch, then appends
  the whole batch in arrival order with the current token

On success the token advances and the batch is cleared. On failure the
batch is kept for the next tick and the token is left alone. Ticks from the
interval timer have nobody waiting on them, so their failures go to the
error channel; flush and stop requests carry a future and get the outcome
directly instead.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from typing import Literal

from ..backends import LogStreamBackend
from ..metrics.metrics import MetricsCollector
from . import diagnostics
from .concurrency import BatchQueue
from .entry import LogEvent
from .error_channel import ErrorChannel, FlushFailure
from .errors import AppendError

TickKind = Literal["timer", "flush", "stop"]


@dataclass
class Tick:
    kind: TickKind = "timer"
    completion: asyncio.Future[FlushFailure | None] | None = field(
        default=None, repr=False
    )

    def resolve(self, outcome: FlushFailure | None) -> None:
        if self.completion is not None and not self.completion.done():
            self.completion.set_result(outcome)


class FlushLoop:
    """Accumulates queued events and appends them once per tick."""

    def __init__(
        self,
        *,
        backend: LogStreamBackend,
        log_group: str,
        log_stream: str,
        sequence_token: str | None,
        interval: float,
        queue: BatchQueue[LogEvent],
        error_channel: ErrorChannel,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._backend = backend
        self._log_group = log_group
        self._log_stream = log_stream
        self._sequence_token = sequence_token
        self._interval = interval
        self._queue = queue
        self._errors = error_channel
        self._metrics = metrics
        self._batch: list[LogEvent] = []
        self._ticks: asyncio.Queue[Tick] = asyncio.Queue()
        self._timer_tick_pending = False
        self._flush_id = 0
        # Outcome handed to requests that arrive after the loop ended
        self._terminal_failure: FlushFailure | None = None
        self._task: asyncio.Task[None] | None = None
        self._timer_task: asyncio.Task[None] | None = None

    @property
    def sequence_token(self) -> str | None:
        return self._sequence_token

    @property
    def pending_events(self) -> int:
        """Events accepted but not yet acknowledged by the backend."""
        return len(self._batch) + self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self.run(), name="cwhook-flush-loop")
        self._timer_task = asyncio.create_task(
            self._run_timer(), name="cwhook-flush-timer"
        )

    async def request_flush(self) -> FlushFailure | None:
        """Force a tick now and wait until it has been processed."""
        return await self._submit("flush")

    async def stop(self, timeout: float | None = None) -> FlushFailure | None:
        """Flush everything still pending and end the loop.

        Returns the failure of the final flush, if any. On timeout the loop
        is cancelled and a failure covering the undelivered events is
        returned.
        """
        if self._timer_task is not None:
            self._timer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer_task
        if not self.running:
            return None
        try:
            return await asyncio.wait_for(self._submit("stop"), timeout=timeout)
        except asyncio.TimeoutError:
            assert self._task is not None
            failure = self._abandoned(f"timed out after {timeout}s draining")
            self._terminal_failure = failure
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._resolve_outstanding(failure)
            return failure
        finally:
            if self._task is not None and not self._task.done():
                await self._task

    async def _submit(self, kind: TickKind) -> FlushFailure | None:
        if self._task is not None and self._task.done():
            return self._ended_outcome("flush loop ended before draining")
        completion: asyncio.Future[FlushFailure | None] = (
            asyncio.get_running_loop().create_future()
        )
        self._ticks.put_nowait(Tick(kind=kind, completion=completion))
        return await completion

    def _abandoned(self, reason: str) -> FlushFailure:
        """Failure covering every event the loop will no longer deliver."""
        return FlushFailure(
            flush_id=self._flush_id + 1,
            event_count=self.pending_events,
            error=AppendError(
                f"{reason} {self._log_group}/{self._log_stream}",
                log_group=self._log_group,
                log_stream=self._log_stream,
            ),
        )

    def _ended_outcome(self, reason: str) -> FlushFailure | None:
        if self._terminal_failure is not None:
            return self._terminal_failure
        return self._abandoned(reason) if self.pending_events else None

    def _resolve_outstanding(
        self, outcome: FlushFailure | None, current: Tick | None = None
    ) -> None:
        """Complete the in-flight request and every queued one with ``outcome``."""
        if current is not None:
            current.resolve(outcome)
        while not self._ticks.empty():
            self._ticks.get_nowait().resolve(outcome)

    async def _run_timer(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            # Like a dropped ticker tick: never queue more than one
            if not self._timer_tick_pending:
                self._timer_tick_pending = True
                self._ticks.put_nowait(Tick())
            next_at += self._interval
            now = loop.time()
            while next_at <= now:
                next_at += self._interval

    async def run(self) -> None:
        get_event: asyncio.Task[LogEvent] | None = None
        get_tick: asyncio.Task[Tick] | None = None
        tick: Tick | None = None
        try:
            while True:
                if get_event is None:
                    get_event = asyncio.ensure_future(self._queue.get())
                if get_tick is None:
                    get_tick = asyncio.ensure_future(self._ticks.get())
                done, _ = await asyncio.wait(
                    {get_event, get_tick}, return_when=asyncio.FIRST_COMPLETED
                )
                if get_event in done:
                    self._batch.append(get_event.result())
                    get_event = None
                if get_tick in done:
                    tick = get_tick.result()
                    get_tick = None
                    if tick.kind == "stop" and get_event is not None:
                        await self._settle(get_event)
                        get_event = None
                    finished = await self._on_tick(tick)
                    tick = None
                    if finished:
                        return
        finally:
            for pending in (get_event, get_tick):
                if pending is not None and not pending.done():
                    pending.cancel()
            if tick is not None or not self._ticks.empty():
                outcome = self._ended_outcome("flush loop cancelled while draining")
                self._terminal_failure = outcome
                self._resolve_outstanding(outcome, tick)

    async def _settle(self, get_event: asyncio.Task[LogEvent]) -> None:
        """Retire the pending queue read without losing an event it took."""
        get_event.cancel()
        await asyncio.wait({get_event})
        if not get_event.cancelled():
            self._batch.append(get_event.result())

    async def _on_tick(self, tick: Tick) -> bool:
        """Handle one tick; returns True when the loop should end."""
        if tick.kind == "timer":
            self._timer_tick_pending = False
        if tick.kind == "stop":
            # Let producers blocked on a full queue land their events too
            while drained := self._queue.drain_nowait():
                self._batch.extend(drained)
                await asyncio.sleep(0)
        else:
            self._batch.extend(self._queue.drain_nowait())

        failure = await self._flush()
        if failure is not None and tick.completion is None:
            await self._publish(failure)
        tick.resolve(failure)
        return tick.kind == "stop"

    async def _flush(self) -> FlushFailure | None:
        if not self._batch:
            return None
        self._flush_id += 1
        events = list(self._batch)
        start = time.perf_counter()
        try:
            next_token = await self._backend.put_log_events(
                self._log_group,
                self._log_stream,
                events,
                self._sequence_token,
            )
        except Exception as e:
            error = (
                e
                if isinstance(e, AppendError)
                else AppendError(
                    f"append to {self._log_group}/{self._log_stream} failed: {e}",
                    log_group=self._log_group,
                    log_stream=self._log_stream,
                    cause=e,
                )
            )
            diagnostics.warn(
                "flush-loop",
                "batch append failed; events kept for next tick",
                flush_id=self._flush_id,
                event_count=len(events),
                _rate_limit_key="flush-loop-append",
                **error.to_dict(),
            )
            await self._record(len(events), ok=False, start=start)
            return FlushFailure(
                flush_id=self._flush_id, event_count=len(events), error=error
            )
        self._sequence_token = next_token
        self._batch.clear()
        await self._record(len(events), ok=True, start=start)
        return None

    async def _publish(self, failure: FlushFailure) -> None:
        overwritten = self._errors.publish(failure)
        if overwritten and self._metrics is not None:
            with contextlib.suppress(Exception):
                await self._metrics.record_failure_overwritten()

    async def _record(self, event_count: int, *, ok: bool, start: float) -> None:
        if self._metrics is None:
            return
        with contextlib.suppress(Exception):
            await self._metrics.record_append(
                path="batch",
                event_count=event_count,
                ok=ok,
                duration_seconds=time.perf_counter() - start,
            )
