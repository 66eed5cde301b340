from __future__ import annotations

import asyncio
import json

import pytest

from cwhook import AppendError, CloudWatchHook, create_hook
from cwhook.metrics.metrics import MetricsCollector
from cwhook.testing import FakeLogStreamBackend, create_entries, create_log_entry

pytestmark = pytest.mark.critical


@pytest.mark.asyncio
async def test_token_chain_across_appends(
    sync_hook: CloudWatchHook, fake_backend: FakeLogStreamBackend
) -> None:
    for entry in create_entries(3):
        await sync_hook.fire(entry)

    tokens_sent = [call.sequence_token for call in fake_backend.calls]
    assert tokens_sent == [None, "token-1", "token-2"]
    assert sync_hook.sequence_token == "token-3"
    assert all(len(call.events) == 1 for call in fake_backend.calls)


@pytest.mark.asyncio
async def test_first_append_to_existing_stream_uses_described_token() -> None:
    backend = FakeLogStreamBackend(existing_token="seed")
    hook = await create_hook("g", "s", 0, backend)

    await hook.fire(create_log_entry("hello"))

    assert backend.calls[0].sequence_token == "seed"
    assert hook.sequence_token == "token-1"


@pytest.mark.asyncio
async def test_failed_append_returns_error_and_keeps_token(
    sync_hook: CloudWatchHook, fake_backend: FakeLogStreamBackend
) -> None:
    await sync_hook.fire(create_log_entry("first"))
    fake_backend.fail_next()

    with pytest.raises(AppendError) as exc_info:
        await sync_hook.fire(create_log_entry("second"))

    assert exc_info.value.error_code == "ThrottlingException"
    assert sync_hook.sequence_token == "token-1"

    # No retry at this layer; the next call reuses the unchanged token
    await sync_hook.fire(create_log_entry("third"))
    assert [c.sequence_token for c in fake_backend.calls] == [
        None,
        "token-1",
        "token-1",
    ]
    assert len(fake_backend.calls) == 3


@pytest.mark.asyncio
async def test_unexpected_backend_exception_is_wrapped(
    sync_hook: CloudWatchHook, fake_backend: FakeLogStreamBackend
) -> None:
    fake_backend.fail_next(error=RuntimeError("socket closed"))

    with pytest.raises(AppendError) as exc_info:
        await sync_hook.fire(create_log_entry("x"))

    assert isinstance(exc_info.value.cause, RuntimeError)
    assert exc_info.value.log_group == "test-group"
    assert sync_hook.sequence_token is None


@pytest.mark.asyncio
async def test_concurrent_producers_never_reuse_a_token() -> None:
    # The fake rejects stale tokens, so any interleaving would surface here
    backend = FakeLogStreamBackend(latency=0.001)
    hook = await create_hook("g", "s", 0, backend)

    await asyncio.gather(*(hook.fire(e) for e in create_entries(20)))

    assert len(backend.accepted_calls) == 20
    sent = [c.sequence_token for c in backend.calls]
    assert len(set(sent)) == 20
    assert hook.sequence_token == "token-20"


@pytest.mark.asyncio
async def test_sync_path_flush_is_noop_and_close_is_immediate(
    sync_hook: CloudWatchHook, fake_backend: FakeLogStreamBackend
) -> None:
    assert sync_hook.batching is False
    await sync_hook.flush()
    await sync_hook.close()
    assert fake_backend.calls == []
    assert sync_hook.pending_events == 0


@pytest.mark.asyncio
async def test_sync_path_records_metrics() -> None:
    backend = FakeLogStreamBackend()
    metrics = MetricsCollector(enabled=True)
    hook = await create_hook("g", "s", 0, backend, metrics=metrics)

    await hook.fire(create_log_entry("ok"))
    backend.fail_next()
    with pytest.raises(AppendError):
        await hook.fire(create_log_entry("bad"))

    snap = await metrics.snapshot()
    assert snap.append_calls == 2
    assert snap.append_failures == 1
    assert snap.events_delivered == 1


@pytest.mark.asyncio
async def test_sync_event_carries_formatted_message(
    sync_hook: CloudWatchHook, fake_backend: FakeLogStreamBackend
) -> None:
    entry = create_log_entry("user created", level="warn", user="u1")
    await sync_hook.fire(entry)

    event = fake_backend.calls[0].events[0]
    body = json.loads(event.message)
    assert body["msg"] == "user created"
    assert body["level"] == "WARNING"
    assert body["user"] == "u1"
    assert event.timestamp_millis == entry.timestamp_millis
