from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import boto3
import pytest
from botocore.stub import Stubber

from cwhook import AppendError
from cwhook.backends import LogStreamBackend, StreamCreatingBackend
from cwhook.backends.cloudwatch import CloudWatchLogsBackend
from cwhook.core.entry import LogEvent


@pytest.fixture
def logs_client() -> Any:
    return boto3.client(
        "logs",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(logs_client: Any) -> Iterator[Stubber]:
    with Stubber(logs_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


def test_backend_satisfies_protocols(logs_client: Any) -> None:
    backend = CloudWatchLogsBackend(logs_client)
    assert isinstance(backend, LogStreamBackend)
    assert isinstance(backend, StreamCreatingBackend)


@pytest.mark.asyncio
async def test_describe_matches_exact_stream_name(
    logs_client: Any, stubber: Stubber
) -> None:
    stubber.add_response(
        "describe_log_streams",
        {
            "logStreams": [
                {"logStreamName": "web-10", "uploadSequenceToken": "wrong"},
                {"logStreamName": "web-1", "uploadSequenceToken": "right"},
            ]
        },
        {"logGroupName": "/app", "logStreamNamePrefix": "web-1"},
    )
    backend = CloudWatchLogsBackend(logs_client)

    assert await backend.describe_sequence_token("/app", "web-1") == "right"


@pytest.mark.asyncio
async def test_describe_new_stream_returns_none(
    logs_client: Any, stubber: Stubber
) -> None:
    stubber.add_response(
        "describe_log_streams",
        {"logStreams": []},
        {"logGroupName": "/app", "logStreamNamePrefix": "new"},
    )
    backend = CloudWatchLogsBackend(logs_client)

    assert await backend.describe_sequence_token("/app", "new") is None


@pytest.mark.asyncio
async def test_describe_failure_translated(logs_client: Any, stubber: Stubber) -> None:
    stubber.add_client_error(
        "describe_log_streams", service_error_code="ResourceNotFoundException"
    )
    backend = CloudWatchLogsBackend(logs_client)

    with pytest.raises(AppendError) as exc_info:
        await backend.describe_sequence_token("/missing", "s")
    assert exc_info.value.error_code == "ResourceNotFoundException"


@pytest.mark.asyncio
async def test_put_without_token_omits_sequence_token(
    logs_client: Any, stubber: Stubber
) -> None:
    events = [LogEvent("a", 1000), LogEvent("b", 999)]
    stubber.add_response(
        "put_log_events",
        {"nextSequenceToken": "t1"},
        {
            "logGroupName": "/app",
            "logStreamName": "s",
            # Arrival order is kept, even when timestamps go backwards
            "logEvents": [
                {"timestamp": 1000, "message": "a"},
                {"timestamp": 999, "message": "b"},
            ],
        },
    )
    backend = CloudWatchLogsBackend(logs_client)

    assert await backend.put_log_events("/app", "s", events, None) == "t1"


@pytest.mark.asyncio
async def test_put_with_token(logs_client: Any, stubber: Stubber) -> None:
    stubber.add_response(
        "put_log_events",
        {"nextSequenceToken": "t2", "rejectedLogEventsInfo": {"tooOldLogEventEndIndex": 0}},
        {
            "logGroupName": "/app",
            "logStreamName": "s",
            "logEvents": [{"timestamp": 5, "message": "m"}],
            "sequenceToken": "t1",
        },
    )
    backend = CloudWatchLogsBackend(logs_client)

    assert await backend.put_log_events("/app", "s", [LogEvent("m", 5)], "t1") == "t2"


@pytest.mark.asyncio
async def test_put_failure_carries_error_code(
    logs_client: Any, stubber: Stubber
) -> None:
    stubber.add_client_error(
        "put_log_events",
        service_error_code="InvalidSequenceTokenException",
        service_message="The given sequenceToken is invalid",
    )
    backend = CloudWatchLogsBackend(logs_client)

    with pytest.raises(AppendError) as exc_info:
        await backend.put_log_events("/app", "s", [LogEvent("m", 5)], "stale")
    err = exc_info.value
    assert err.error_code == "InvalidSequenceTokenException"
    assert (err.log_group, err.log_stream) == ("/app", "s")


@pytest.mark.asyncio
async def test_ensure_log_stream_tolerates_existing(
    logs_client: Any, stubber: Stubber
) -> None:
    stubber.add_client_error(
        "create_log_stream", service_error_code="ResourceAlreadyExistsException"
    )
    stubber.add_client_error(
        "create_log_stream", service_error_code="AccessDeniedException"
    )
    backend = CloudWatchLogsBackend(logs_client)

    await backend.ensure_log_stream("/app", "s")
    with pytest.raises(AppendError):
        await backend.ensure_log_stream("/app", "s")


def test_client_built_from_settings() -> None:
    from cwhook.core.settings import AwsSettings

    session = boto3.session.Session(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
    )
    settings = AwsSettings(
        region="eu-central-1",
        connect_timeout_seconds=1.0,
        read_timeout_seconds=2.0,
        max_attempts=2,
    )
    client = CloudWatchLogsBackend(session=session, settings=settings)._build_client()

    assert client.meta.region_name == "eu-central-1"
    assert client.meta.config.connect_timeout == 1.0
    assert client.meta.config.read_timeout == 2.0
