"""
Pytest fixtures for hook tests.

Register with ``pytest_plugins = ("cwhook.testing.fixtures",)``.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator

import pytest

from ..core.errors import HookError
from ..core.hook import CloudWatchHook, create_hook
from .backends import FakeLogStreamBackend

# Long enough that the timer never ticks during a unit test; tests drive
# ticks explicitly with ``hook.flush()``
MANUAL_TICK_INTERVAL = 3600.0


@pytest.fixture
def fake_backend() -> FakeLogStreamBackend:
    return FakeLogStreamBackend()


@pytest.fixture
async def sync_hook(
    fake_backend: FakeLogStreamBackend,
) -> AsyncGenerator[CloudWatchHook, None]:
    hook = await create_hook("test-group", "test-stream", 0, fake_backend)
    yield hook
    await hook.close()


@pytest.fixture
async def batching_hook(
    fake_backend: FakeLogStreamBackend,
) -> AsyncGenerator[CloudWatchHook, None]:
    hook = await create_hook(
        "test-group", "test-stream", MANUAL_TICK_INTERVAL, fake_backend
    )
    yield hook
    with contextlib.suppress(HookError):
        await hook.close(timeout=5.0)
