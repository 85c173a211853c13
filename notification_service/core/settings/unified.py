"""Unified settings composition for convenient access.

Composes every domain settings class into one object so the notification
service factory can be handed a single value.

Usage:
    from notification_service.core.settings import get_settings

    settings = get_settings()
    print(settings.email.strategy)
    print(settings.delivery.retry_backoff_seconds)

Note:
    Each nested settings class still respects its own env prefix.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .delivery import DeliverySettings
from .email import EmailSettings
from .logs import LoggingSettings
from .push import PushSettings


class NotificationSettings(BaseSettings):
    """All notification delivery settings in one place."""

    email: EmailSettings = Field(default_factory=EmailSettings)
    push: PushSettings = Field(default_factory=PushSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> NotificationSettings:
    """Get cached unified settings instance."""
    return NotificationSettings()
