"""
Hook facade: the entry point the logging framework calls once per entry.

The delivery path is chosen once, at construction, from the batch interval:

- ``0`` ships every entry synchronously; ``fire`` returns after the backend
  acknowledged it and the new sequence token is in place.
- ``> 0`` queues entries for the background flush loop; ``fire`` returns as
  soon as the entry is queued, before it is durable. A failed background
  flush is raised from a *later* ``fire`` call as ``BatchDeliveryError``,
  not from the call whose entry was in the failing batch.

Example:
    hook = await create_hook("/app/prod", "web-1", batch_interval=5.0)
    await hook.fire(LogEntry(level="INFO", message="started"))
    await hook.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import types
from datetime import timedelta

from ..backends import LogStreamBackend, StreamCreatingBackend
from ..metrics.metrics import MetricsCollector
from . import diagnostics
from .concurrency import BatchQueue
from .delivery import SynchronousDelivery
from .entry import LogEntry, LogEvent
from .error_channel import ErrorChannel
from .errors import (
    BatchDeliveryError,
    ConfigurationError,
    ConstructionError,
    HookClosedError,
)
from .flush_loop import FlushLoop
from .levels import get_all_levels
from .serialization import format_entry
from .settings import HookSettings


def _interval_seconds(batch_interval: float | timedelta) -> float:
    if isinstance(batch_interval, timedelta):
        return batch_interval.total_seconds()
    return float(batch_interval)


class CloudWatchHook:
    """Ships log entries to one log group/stream.

    Build instances with ``create_hook`` or ``CloudWatchHook.create``; the
    constructor assumes the stream has already been described.
    """

    name = "cloudwatch"

    def __init__(
        self,
        *,
        log_group: str,
        log_stream: str,
        batch_interval: float,
        backend: LogStreamBackend,
        sequence_token: str | None,
        settings: HookSettings,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._log_group = log_group
        self._log_stream = log_stream
        self._batch_interval = batch_interval
        self._backend = backend
        self._settings = settings
        self._metrics = metrics
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._sync: SynchronousDelivery | None = None
        self._queue: BatchQueue[LogEvent] | None = None
        self._errors: ErrorChannel | None = None
        self._flush_loop: FlushLoop | None = None

        # Exactly one of the two paths owns the token for the hook's lifetime
        if batch_interval > 0:
            self._queue = BatchQueue(
                settings.queue_capacity,
                policy=settings.backpressure_policy,
                enqueue_timeout=settings.enqueue_timeout_seconds,
            )
            self._errors = ErrorChannel(settings.error_channel_size)
            self._flush_loop = FlushLoop(
                backend=backend,
                log_group=log_group,
                log_stream=log_stream,
                sequence_token=sequence_token,
                interval=batch_interval,
                queue=self._queue,
                error_channel=self._errors,
                metrics=metrics,
            )
        else:
            self._sync = SynchronousDelivery(
                backend=backend,
                log_group=log_group,
                log_stream=log_stream,
                sequence_token=sequence_token,
                metrics=metrics,
            )

    @classmethod
    async def create(
        cls,
        log_group: str | None = None,
        log_stream: str | None = None,
        batch_interval: float | timedelta | None = None,
        backend: LogStreamBackend | None = None,
        *,
        settings: HookSettings | None = None,
        metrics: MetricsCollector | None = None,
    ) -> CloudWatchHook:
        """Describe the stream, seed the sequence token and start delivery.

        Explicit arguments take precedence over ``settings`` (which default
        to ``CWHOOK_*`` environment variables).

        Raises:
            ConstructionError: invalid configuration, or the backend could not
                be reached or described. No hook is returned.
        """
        try:
            cfg = settings or HookSettings()
        except Exception as e:
            raise ConstructionError("Invalid hook settings", cause=e) from e

        group = log_group or cfg.log_group
        stream = log_stream or cfg.log_stream
        interval = _interval_seconds(
            cfg.batch_interval_seconds if batch_interval is None else batch_interval
        )
        if not group or not stream:
            cause = ConfigurationError("log_group and log_stream are required")
            raise ConstructionError(str(cause), cause=cause)
        if interval < 0:
            cause = ConfigurationError(
                f"batch_interval must be >= 0, got {interval}"
            )
            raise ConstructionError(str(cause), cause=cause)

        if settings is not None:
            diagnostics.configure(cfg.internal_logging_enabled)

        if backend is None:
            from ..backends.cloudwatch import CloudWatchLogsBackend

            backend = CloudWatchLogsBackend(settings=cfg.aws)
        if metrics is None:
            metrics = MetricsCollector(enabled=cfg.enable_metrics)

        try:
            if cfg.create_log_stream:
                if not isinstance(backend, StreamCreatingBackend):
                    raise ConfigurationError(
                        f"{type(backend).__name__} cannot create log streams"
                    )
                await backend.ensure_log_stream(group, stream)
            token = await backend.describe_sequence_token(group, stream)
        except Exception as e:
            raise ConstructionError(
                f"Could not set up log stream {group}/{stream}: {e}",
                cause=e,
            ) from e

        hook = cls(
            log_group=group,
            log_stream=stream,
            batch_interval=interval,
            backend=backend,
            sequence_token=token,
            settings=cfg,
            metrics=metrics,
        )
        hook._start()
        diagnostics.debug(
            "hook",
            "hook created",
            log_group=group,
            log_stream=stream,
            batching=hook.batching,
            existing_stream=token is not None,
        )
        return hook

    @classmethod
    async def from_settings(
        cls,
        settings: HookSettings,
        backend: LogStreamBackend | None = None,
        *,
        metrics: MetricsCollector | None = None,
    ) -> CloudWatchHook:
        return await cls.create(backend=backend, settings=settings, metrics=metrics)

    def _start(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._flush_loop is not None:
            self._flush_loop.start()

    @property
    def log_group(self) -> str:
        return self._log_group

    @property
    def log_stream(self) -> str:
        return self._log_stream

    @property
    def batch_interval(self) -> float:
        return self._batch_interval

    @property
    def batching(self) -> bool:
        return self._flush_loop is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        """Event loop the hook was started on."""
        return self._loop

    @property
    def metrics(self) -> MetricsCollector | None:
        return self._metrics

    @property
    def sequence_token(self) -> str | None:
        """Current sequence token of whichever path is active."""
        if self._flush_loop is not None:
            return self._flush_loop.sequence_token
        assert self._sync is not None
        return self._sync.sequence_token

    @property
    def pending_events(self) -> int:
        if self._flush_loop is None:
            return 0
        return self._flush_loop.pending_events

    def levels(self) -> frozenset[str]:
        """Every known level; the hook does not filter by severity."""
        return frozenset(get_all_levels())

    async def fire(self, entry: LogEntry) -> None:
        """Ship one entry.

        Raises:
            SerializationError: the entry could not be formatted
            AppendError: synchronous path only, the append failed
            QueueFullError: batching path only, per the backpressure policy
            BatchDeliveryError: batching path only, an earlier flush failed
            HookClosedError: the hook has been closed
        """
        if self._closed:
            raise HookClosedError(
                f"hook for {self._log_group}/{self._log_stream} is closed"
            )
        event = format_entry(entry)

        if self._sync is not None:
            await self._sync.append_one(event)
            return

        assert self._queue is not None and self._errors is not None
        await self._queue.put(event)
        if self._metrics is not None:
            with contextlib.suppress(Exception):
                await self._metrics.record_event_enqueued()
        failure = self._errors.poll()
        if failure is not None:
            raise BatchDeliveryError(failure)

    async def flush(self) -> None:
        """Append everything queued so far without waiting for the next tick.

        No-op on the synchronous path.

        Raises:
            BatchDeliveryError: the append failed; the events stay pending
        """
        if self._closed:
            raise HookClosedError(
                f"hook for {self._log_group}/{self._log_stream} is closed"
            )
        if self._flush_loop is None:
            return
        failure = await self._flush_loop.request_flush()
        if failure is not None:
            raise BatchDeliveryError(failure)

    async def close(self, timeout: float | None = None) -> None:
        """Stop accepting entries, flush what is pending, end the flush loop.

        With a ``timeout`` the wait is abandoned once it expires and any
        ``flush()`` still waiting is released with the same failure. An append
        already handed to a thread-backed backend such as
        ``CloudWatchLogsBackend`` cannot be interrupted and may still succeed
        after that, so events counted as undelivered can turn up in the
        stream. Re-sending them may duplicate them.

        Raises:
            BatchDeliveryError: the final flush failed or timed out; the
                failure names how many events were not delivered
        """
        if self._closed:
            return
        self._closed = True
        if self._flush_loop is None:
            return
        failure = await self._flush_loop.stop(timeout=timeout)
        if failure is not None:
            diagnostics.warn(
                "hook",
                "events undelivered at close",
                log_group=self._log_group,
                log_stream=self._log_stream,
                event_count=failure.event_count,
                error=str(failure.error),
            )
            raise BatchDeliveryError(failure)

    async def __aenter__(self) -> CloudWatchHook:
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        await self.close()


async def create_hook(
    log_group: str | None = None,
    log_stream: str | None = None,
    batch_interval: float | timedelta | None = None,
    backend: LogStreamBackend | None = None,
    *,
    settings: HookSettings | None = None,
    metrics: MetricsCollector | None = None,
) -> CloudWatchHook:
    """Create and start a hook; see ``CloudWatchHook.create``."""
    return await CloudWatchHook.create(
        log_group,
        log_stream,
        batch_interval,
        backend,
        settings=settings,
        metrics=metrics,
    )
