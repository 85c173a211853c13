"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (email, push, delivery, logging), read from the
environment (and an optional .env file), validated once and frozen.

Import settings via cached loaders:
    from notification_service.core.settings import get_email_settings

Or use unified settings for convenient access to all domains:
    from notification_service.core.settings import get_settings

    settings = get_settings()
    print(settings.email.strategy)
"""

from __future__ import annotations

from .delivery import DeliverySettings
from .email import EmailSettings, EmailStrategy
from .loader import (
    clear_settings_cache,
    get_delivery_settings,
    get_email_settings,
    get_logging_settings,
    get_push_settings,
)
from .logs import LoggingSettings
from .push import PushSettings
from .unified import NotificationSettings, get_settings

__all__ = [
    "DeliverySettings",
    "EmailSettings",
    "EmailStrategy",
    "LoggingSettings",
    "NotificationSettings",
    "PushSettings",
    "clear_settings_cache",
    "get_delivery_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_push_settings",
    "get_settings",
]
