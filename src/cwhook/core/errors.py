"""
Error taxonomy for the CloudWatch hook.

Every failure the hook reports is a ``HookError`` carrying a category, a
severity and a small context payload. Backend library exceptions are
translated into ``AppendError`` at the backend boundary so callers never
need to import botocore to handle delivery failures.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .error_channel import FlushFailure


class ErrorCategory(str, Enum):
    CONFIG = "config"
    CONSTRUCTION = "construction"
    BACKEND = "backend"
    BACKPRESSURE = "backpressure"
    SERIALIZATION = "serialization"
    LIFECYCLE = "lifecycle"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Structured context attached to a ``HookError``."""

    category: ErrorCategory
    severity: ErrorSeverity
    timestamp: float = field(default_factory=time.time)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "details": dict(self.details),
        }


def create_error_context(
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    **details: Any,
) -> ErrorContext:
    return ErrorContext(category=category, severity=severity, details=details)


class HookError(Exception):
    """Base class for all errors raised by the hook."""

    default_category = ErrorCategory.BACKEND
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        error_context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.context = error_context or create_error_context(
            self.category, self.severity
        )
        self.cause = cause
        if cause is not None and self.__cause__ is None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error.type": type(self).__name__,
            "error.message": self.message,
            "error.context": self.context.to_dict(),
        }
        if self.cause is not None:
            data["error.cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data


class ConfigurationError(HookError):
    default_category = ErrorCategory.CONFIG
    default_severity = ErrorSeverity.HIGH


class ConstructionError(HookError):
    """Hook setup failed; no hook instance was produced."""

    default_category = ErrorCategory.CONSTRUCTION
    default_severity = ErrorSeverity.CRITICAL


class AppendError(HookError):
    """A single append call against the log stream backend failed."""

    default_category = ErrorCategory.BACKEND
    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        *,
        log_group: str | None = None,
        log_stream: str | None = None,
        error_code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            error_context=create_error_context(
                ErrorCategory.BACKEND,
                ErrorSeverity.HIGH,
                log_group=log_group,
                log_stream=log_stream,
                error_code=error_code,
            ),
            cause=cause,
        )
        self.log_group = log_group
        self.log_stream = log_stream
        self.error_code = error_code


class BackpressureError(HookError):
    default_category = ErrorCategory.BACKPRESSURE
    default_severity = ErrorSeverity.MEDIUM


class QueueFullError(BackpressureError):
    """The batching queue had no room for the event."""

    def __init__(self, message: str, *, capacity: int | None = None) -> None:
        super().__init__(
            message,
            error_context=create_error_context(
                ErrorCategory.BACKPRESSURE, ErrorSeverity.MEDIUM, capacity=capacity
            ),
        )
        self.capacity = capacity


class BatchDeliveryError(HookError):
    """A background flush failed.

    Raised from the producer call that observed the failure, which is not
    necessarily the call whose event was in the failing batch.
    """

    default_category = ErrorCategory.BACKEND
    default_severity = ErrorSeverity.HIGH

    def __init__(self, failure: FlushFailure) -> None:
        super().__init__(
            f"flush #{failure.flush_id} of {failure.event_count} earlier "
            f"event(s) failed: {failure.error}",
            error_context=create_error_context(
                ErrorCategory.BACKEND,
                ErrorSeverity.HIGH,
                flush_id=failure.flush_id,
                event_count=failure.event_count,
            ),
            cause=failure.error,
        )
        self.failure = failure


class SerializationError(HookError):
    default_category = ErrorCategory.SERIALIZATION
    default_severity = ErrorSeverity.MEDIUM


class HookClosedError(HookError):
    default_category = ErrorCategory.LIFECYCLE
    default_severity = ErrorSeverity.LOW
