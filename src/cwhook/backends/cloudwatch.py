"""
CloudWatch Logs backend built on boto3.

boto3 clients are synchronous; every call runs in a worker thread through
``asyncio.to_thread`` so the event loop is never blocked. Timeouts and the
retry budget come from ``AwsSettings`` via ``botocore.config.Config``; the
default of a single attempt leaves retry policy to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core import diagnostics
from ..core.entry import LogEvent
from ..core.errors import AppendError
from ..core.settings import AwsSettings


def _error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", "ClientError"))
    return type(exc).__name__


class CloudWatchLogsBackend:
    """``LogStreamBackend`` talking to AWS CloudWatch Logs."""

    name = "cloudwatch-logs"

    def __init__(
        self,
        client: Any = None,
        *,
        session: boto3.session.Session | None = None,
        settings: AwsSettings | None = None,
    ) -> None:
        self._client = client
        self._session = session
        self._settings = settings or AwsSettings()
        self._client_lock = asyncio.Lock()

    def _build_client(self) -> Any:
        session = self._session or boto3.session.Session(
            profile_name=self._settings.profile
        )
        config = Config(
            connect_timeout=self._settings.connect_timeout_seconds,
            read_timeout=self._settings.read_timeout_seconds,
            retries={"total_max_attempts": self._settings.max_attempts},
        )
        return session.client(
            "logs",
            region_name=self._settings.region,
            endpoint_url=self._settings.endpoint_url,
            config=config,
        )

    async def _ensure_client(self) -> Any:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = await asyncio.to_thread(self._build_client)
        return self._client

    async def describe_sequence_token(
        self, log_group: str, log_stream: str
    ) -> str | None:
        client = await self._ensure_client()

        def _find() -> str | None:
            paginator = client.get_paginator("describe_log_streams")
            pages = paginator.paginate(
                logGroupName=log_group, logStreamNamePrefix=log_stream
            )
            for page in pages:
                for stream in page.get("logStreams", []):
                    # Prefix search; only the exact name is ours
                    if stream.get("logStreamName") == log_stream:
                        token: str | None = stream.get("uploadSequenceToken")
                        return token
            return None

        try:
            return await asyncio.to_thread(_find)
        except (ClientError, BotoCoreError) as e:
            raise AppendError(
                f"describe_log_streams failed for {log_group}/{log_stream}",
                log_group=log_group,
                log_stream=log_stream,
                error_code=_error_code(e),
                cause=e,
            ) from e

    async def ensure_log_stream(self, log_group: str, log_stream: str) -> None:
        client = await self._ensure_client()
        try:
            await asyncio.to_thread(
                client.create_log_stream,
                logGroupName=log_group,
                logStreamName=log_stream,
            )
        except ClientError as e:
            if _error_code(e) == "ResourceAlreadyExistsException":
                return
            raise AppendError(
                f"create_log_stream failed for {log_group}/{log_stream}",
                log_group=log_group,
                log_stream=log_stream,
                error_code=_error_code(e),
                cause=e,
            ) from e
        except BotoCoreError as e:
            raise AppendError(
                f"create_log_stream failed for {log_group}/{log_stream}",
                log_group=log_group,
                log_stream=log_stream,
                error_code=_error_code(e),
                cause=e,
            ) from e

    async def put_log_events(
        self,
        log_group: str,
        log_stream: str,
        events: Sequence[LogEvent],
        sequence_token: str | None,
    ) -> str | None:
        client = await self._ensure_client()
        kwargs: dict[str, Any] = {
            "logGroupName": log_group,
            "logStreamName": log_stream,
            "logEvents": [event.to_request() for event in events],
        }
        # First write to a new stream carries no token at all
        if sequence_token is not None:
            kwargs["sequenceToken"] = sequence_token

        try:
            response = await asyncio.to_thread(client.put_log_events, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise AppendError(
                f"put_log_events failed for {log_group}/{log_stream}",
                log_group=log_group,
                log_stream=log_stream,
                error_code=_error_code(e),
                cause=e,
            ) from e

        rejected = response.get("rejectedLogEventsInfo")
        if rejected:
            diagnostics.warn(
                "cloudwatch-backend",
                "events rejected by CloudWatch",
                log_group=log_group,
                log_stream=log_stream,
                rejected=rejected,
                _rate_limit_key="cloudwatch-rejected",
            )
        next_token: str | None = response.get("nextSequenceToken")
        return next_token
