"""
Configuration models for the CloudWatch hook using Pydantic v2 Settings.

Values come from constructor arguments or ``CWHOOK_``-prefixed environment
variables (nested groups use ``__``, e.g. ``CWHOOK_AWS__REGION``). A hook
reads its settings once at construction; they are immutable afterwards.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .concurrency import BackpressurePolicy

DEFAULT_QUEUE_CAPACITY = 10_000


class AwsSettings(BaseModel):
    """Client settings for the CloudWatch Logs backend."""

    model_config = ConfigDict(frozen=True)

    region: str | None = Field(
        default=None,
        description="AWS region; falls back to the boto3 session default",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Override endpoint (e.g. a local CloudWatch emulator)",
    )
    profile: str | None = Field(
        default=None, description="Named profile used to build the boto3 session"
    )
    connect_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Socket connect timeout per request"
    )
    read_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Socket read timeout per request"
    )
    max_attempts: int = Field(
        default=1,
        ge=1,
        description=("Total attempts per call made by botocore; 1 disables retries"),
    )


class HookSettings(BaseSettings):
    """Top-level hook configuration."""

    log_group: str | None = Field(default=None, description="Target log group")
    log_stream: str | None = Field(default=None, description="Target log stream")
    batch_interval_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description=("Flush interval for batching; 0 ships every event synchronously"),
    )
    queue_capacity: int = Field(
        default=DEFAULT_QUEUE_CAPACITY,
        ge=1,
        description="Maximum number of events waiting for the flush loop",
    )
    backpressure_policy: BackpressurePolicy = Field(
        default=BackpressurePolicy.WAIT,
        description="Behavior when the batching queue is full",
    )
    enqueue_timeout_seconds: float | None = Field(
        default=None,
        gt=0.0,
        description=("Upper bound on a WAIT enqueue before QueueFullError is raised"),
    )
    error_channel_size: int = Field(
        default=1,
        ge=1,
        description="Pending flush failures kept for producers to observe",
    )
    create_log_stream: bool = Field(
        default=False,
        description="Create the log stream during construction if missing",
    )
    internal_logging_enabled: bool = Field(
        default=False, description="Emit diagnostics for internal errors"
    )
    enable_metrics: bool = Field(
        default=False, description="Enable Prometheus-compatible metrics"
    )
    aws: AwsSettings = Field(default_factory=AwsSettings)

    model_config = SettingsConfigDict(
        env_prefix="CWHOOK_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    @field_validator("log_group", "log_stream")
    @classmethod
    def _strip_names(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None
