"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from notification_service.core.settings.loader import get_email_settings

    settings = get_email_settings()  # First call: loads and validates
    settings = get_email_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_email_settings.cache_clear()

    Or construct settings directly:
    settings = EmailSettings(sendgrid_enabled=True, ...)
"""

from __future__ import annotations

from functools import lru_cache

from .delivery import DeliverySettings
from .email import EmailSettings
from .logs import LoggingSettings
from .push import PushSettings
from .unified import get_settings


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    """Get cached email backend settings.

    Returns:
        Validated and frozen EmailSettings instance.
    """
    return EmailSettings()


@lru_cache(maxsize=1)
def get_push_settings() -> PushSettings:
    """Get cached push gateway settings.

    Returns:
        Validated and frozen PushSettings instance.
    """
    return PushSettings()


@lru_cache(maxsize=1)
def get_delivery_settings() -> DeliverySettings:
    """Get cached delivery queue settings.

    Returns:
        Validated and frozen DeliverySettings instance.
    """
    return DeliverySettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Clear every cached settings instance (tests and reloads)."""
    get_email_settings.cache_clear()
    get_push_settings.cache_clear()
    get_delivery_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_settings.cache_clear()
