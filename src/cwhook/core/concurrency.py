"""
Bounded batching queue with an explicit backpressure policy.

The queue sits between producer ``fire`` calls and the flush loop. When it
is full the producer either waits for space (optionally bounded by a
timeout) or is rejected immediately; events are never dropped silently.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Generic, TypeVar

from .errors import QueueFullError

T = TypeVar("T")


class BackpressurePolicy(str, Enum):
    WAIT = "wait"  # Wait until space is available (potentially with timeout)
    REJECT = "reject"  # Raise QueueFullError immediately when full


class BatchQueue(Generic[T]):
    """Bounded FIFO between producers and the single flush loop consumer.

    Usage:
        queue = BatchQueue[LogEvent](capacity=10_000)
        await queue.put(event)          # producer side
        event = await queue.get()       # flush loop side
        pending = queue.drain_nowait()  # flush loop, at a tick
    """

    def __init__(
        self,
        capacity: int,
        *,
        policy: BackpressurePolicy = BackpressurePolicy.WAIT,
        enqueue_timeout: float | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if enqueue_timeout is not None and enqueue_timeout <= 0:
            raise ValueError("enqueue_timeout must be > 0")
        self._capacity = capacity
        self._policy = policy
        self._enqueue_timeout = enqueue_timeout
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> BackpressurePolicy:
        return self._policy

    def qsize(self) -> int:
        return self._queue.qsize()

    def is_empty(self) -> bool:
        return self._queue.empty()

    def is_full(self) -> bool:
        return self._queue.full()

    async def put(self, item: T) -> None:
        """Enqueue ``item`` honoring the configured backpressure policy.

        - WAIT: waits until space is available (respecting the timeout if set)
        - REJECT: raises QueueFullError immediately
        """
        if self._policy is BackpressurePolicy.REJECT:
            try:
                self._queue.put_nowait(item)
            except asyncio.QueueFull:
                raise QueueFullError(
                    "Batching queue is full; event rejected",
                    capacity=self._capacity,
                ) from None
            return

        if self._enqueue_timeout is None:
            await self._queue.put(item)
            return
        try:
            await asyncio.wait_for(self._queue.put(item), timeout=self._enqueue_timeout)
        except asyncio.TimeoutError as e:
            raise QueueFullError(
                "Timed out waiting for batching queue space",
                capacity=self._capacity,
            ) from e

    async def get(self) -> T:
        return await self._queue.get()

    def drain_nowait(self) -> list[T]:
        """Remove and return everything currently queued, in FIFO order."""
        items: list[T] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return items
