"""
Public entrypoints for cwhook.

Ships structured log entries to an AWS CloudWatch Logs stream, either one
append per entry or in timed batches, while keeping the stream's sequence
token consistent.

Example:
    import logging

    from cwhook import create_hook, enable_stdlib_bridge

    hook = await create_hook("/app/prod", "web-1", batch_interval=5.0)
    enable_stdlib_bridge(hook, level=logging.INFO)
    logging.getLogger("app").info("started", extra={"port": 8080})
    ...
    await hook.close()
"""

from __future__ import annotations

from ._version import __version__
from .backends import LogStreamBackend
from .core.concurrency import BackpressurePolicy
from .core.entry import LogEntry, LogEvent
from .core.error_channel import FlushFailure
from .core.errors import (
    AppendError,
    BackpressureError,
    BatchDeliveryError,
    ConfigurationError,
    ConstructionError,
    HookClosedError,
    HookError,
    QueueFullError,
    SerializationError,
)
from .core.hook import CloudWatchHook, create_hook
from .core.levels import register_level
from .core.settings import AwsSettings, HookSettings
from .stdlib_bridge import CloudWatchLogHandler, enable_stdlib_bridge

__all__ = [
    "AppendError",
    "AwsSettings",
    "BackpressureError",
    "BackpressurePolicy",
    "BatchDeliveryError",
    "CloudWatchHook",
    "CloudWatchLogHandler",
    "ConfigurationError",
    "ConstructionError",
    "FlushFailure",
    "HookClosedError",
    "HookError",
    "HookSettings",
    "LogEntry",
    "LogEvent",
    "LogStreamBackend",
    "QueueFullError",
    "SerializationError",
    "create_hook",
    "enable_stdlib_bridge",
    "register_level",
    "__version__",
]

VERSION = __version__
