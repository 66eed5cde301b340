"""
Bridge from the standard ``logging`` module to a ``CloudWatchHook``.

The handler turns each ``LogRecord`` into a ``LogEntry`` and schedules
``hook.fire`` on the event loop the hook was started on, from whichever
thread emitted the record. ``logging.Handler.emit`` cannot return errors, so
failures from ``fire`` are reported through internal diagnostics. Records
from the hook's own ``cwhook.*`` loggers are never forwarded.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from datetime import datetime, timezone
from typing import Any

from .core import diagnostics
from .core.entry import LogEntry
from .core.hook import CloudWatchHook

_RESERVED_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_exception_formatter = logging.Formatter()


def _is_internal(name: str) -> bool:
    return name == "cwhook" or name.startswith("cwhook.")


def record_to_entry(record: logging.LogRecord) -> LogEntry:
    """Map a stdlib record to a hook entry; ``extra`` keys become fields."""
    fields: dict[str, Any] = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
    }
    fields["logger"] = record.name
    if record.exc_info and record.exc_info[1] is not None:
        exc = record.exc_info[1]
        fields["error"] = exc
        fields["error.type"] = type(exc).__name__
        fields["error.stack"] = _exception_formatter.formatException(record.exc_info)
    return LogEntry(
        level=record.levelname,
        message=record.getMessage(),
        time=datetime.fromtimestamp(record.created, tz=timezone.utc),
        fields=fields,
    )


class CloudWatchLogHandler(logging.Handler):
    """``logging.Handler`` that forwards records to a hook."""

    def __init__(self, hook: CloudWatchHook, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._hook = hook
        self._pending: set[asyncio.Future[None]] = set()

    @property
    def hook(self) -> CloudWatchHook:
        return self._hook

    def emit(self, record: logging.LogRecord) -> None:
        if _is_internal(record.name):
            return
        try:
            entry = record_to_entry(record)
        except Exception:
            self.handleError(record)
            return

        loop = self._hook.loop
        if loop is None or loop.is_closed():
            diagnostics.warn(
                "stdlib-bridge",
                "hook has no running event loop; record not forwarded",
                logger=record.name,
                _rate_limit_key="stdlib-bridge-no-loop",
            )
            return

        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            task = loop.create_task(self._hook.fire(entry))
            self._pending.add(task)
            task.add_done_callback(self._on_done)
        else:
            future = asyncio.run_coroutine_threadsafe(self._hook.fire(entry), loop)
            future.add_done_callback(self._on_done)

    def _on_done(
        self, future: asyncio.Future[None] | concurrent.futures.Future[None]
    ) -> None:
        if isinstance(future, asyncio.Future):
            self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            diagnostics.warn(
                "stdlib-bridge",
                "forwarding record failed",
                error=str(exc),
                error_type=type(exc).__name__,
                _rate_limit_key="stdlib-bridge-fire",
            )

    async def wait_pending(self) -> None:
        """Wait for ``fire`` calls scheduled from the hook's own loop."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def enable_stdlib_bridge(
    hook: CloudWatchHook,
    *,
    level: int = logging.INFO,
    logger: logging.Logger | str | None = None,
    remove_existing_handlers: bool = False,
) -> CloudWatchLogHandler:
    """Attach a forwarding handler to ``logger`` (the root logger by default)."""
    target = logger if isinstance(logger, logging.Logger) else logging.getLogger(logger)
    if remove_existing_handlers:
        for existing in list(target.handlers):
            target.removeHandler(existing)
    handler = CloudWatchLogHandler(hook, level=level)
    target.addHandler(handler)
    target.setLevel(level)
    return handler
