"""Delivery queue and rate-limit timing settings.

Environment variables use DELIVERY_ prefix.
Example: DELIVERY_RETRY_BACKOFF_SECONDS=30
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeliverySettings(BaseSettings):
    """Timing and retry configuration for the in-process delivery queue."""

    default_max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Attempts for a queued job before it is dropped",
    )
    urgent_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts for a job queued after a failed urgent send",
    )
    retry_backoff_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=3600.0,
        description="Linear backoff step: retry n waits n * this value",
    )
    rate_limit_pause_seconds: float = Field(
        default=10.0,
        ge=0.0,
        le=600.0,
        description="Pause before re-checking when every backend is rate limited",
    )
    spacing_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Delay after each successful queued send",
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        ge=1.0,
        le=3600.0,
        description="Length of each backend's fixed rate-limit window",
    )
    bulk_email_batch_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Emails sent concurrently per bulk batch",
    )
    bulk_email_pause_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Pause between bulk email batches",
    )
    bulk_push_batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Push notifications sent concurrently per bulk batch",
    )
    bulk_push_pause_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=60.0,
        description="Pause between bulk push batches",
    )
    probe_timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Timeout for each backend connectivity probe",
    )

    model_config = SettingsConfigDict(
        env_prefix="DELIVERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
