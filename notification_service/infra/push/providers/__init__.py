"""Push gateways: Firebase for mobile devices, Web Push for browsers."""

from __future__ import annotations

from .base import BasePushProvider, PushDeliveryResult
from .firebase import FirebasePushProvider
from .webpush import WebPushProvider

__all__ = [
    "BasePushProvider",
    "FirebasePushProvider",
    "PushDeliveryResult",
    "WebPushProvider",
]
