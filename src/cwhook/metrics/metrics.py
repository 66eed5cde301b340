"""
Async-first delivery metrics for the CloudWatch hook.

Implements minimal Prometheus-compatible counters and a latency histogram
for the append path.

Design goals:
- Zero global state; each hook owns its collector and registry
- Safe no-op exporters when metrics are disabled by settings
- In-memory counters always maintained for quick assertions in tests
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class DeliveryMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    events_enqueued: int = 0
    events_delivered: int = 0
    append_calls: int = 0
    append_failures: int = 0
    failures_overwritten: int = 0


class MetricsCollector:
    """Hook-scoped async metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = DeliveryMetrics()

        self._c_enqueued: Any | None = None
        self._c_delivered: Any | None = None
        self._c_appends: Any | None = None
        self._c_overwritten: Any | None = None
        self._h_append_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry to avoid global duplication across hooks
            self._registry = CollectorRegistry()
            self._c_enqueued = Counter(
                "cwhook_events_enqueued_total",
                "Events pushed onto the batching queue",
                registry=self._registry,
            )
            self._c_delivered = Counter(
                "cwhook_events_delivered_total",
                "Events acknowledged by the log stream backend",
                registry=self._registry,
            )
            self._c_appends = Counter(
                "cwhook_append_calls_total",
                "Append calls made against the backend",
                ["path", "outcome"],
                registry=self._registry,
            )
            self._c_overwritten = Counter(
                "cwhook_flush_failures_overwritten_total",
                "Flush failures lost before any producer observed them",
                registry=self._registry,
            )
            self._h_append_latency = Histogram(
                "cwhook_append_seconds",
                "Latency of a single append call",
                buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_event_enqueued(self) -> None:
        async with self._lock:
            self._state.events_enqueued += 1
        if self._c_enqueued is not None:
            self._c_enqueued.inc()

    async def record_append(
        self,
        *,
        path: str,
        event_count: int,
        ok: bool,
        duration_seconds: float | None = None,
    ) -> None:
        async with self._lock:
            self._state.append_calls += 1
            if ok:
                self._state.events_delivered += event_count
            else:
                self._state.append_failures += 1
        if not self._enabled:
            return
        if self._c_appends is not None:
            self._c_appends.labels(
                path=path, outcome="success" if ok else "failure"
            ).inc()
        if ok and self._c_delivered is not None:
            self._c_delivered.inc(event_count)
        if duration_seconds is not None and self._h_append_latency is not None:
            self._h_append_latency.observe(duration_seconds)

    async def record_failure_overwritten(self) -> None:
        async with self._lock:
            self._state.failures_overwritten += 1
        if self._c_overwritten is not None:
            self._c_overwritten.inc()

    async def snapshot(self) -> DeliveryMetrics:
        async with self._lock:
            return replace(self._state)
