"""Push delivery: Firebase mobile push and browser Web Push."""

from __future__ import annotations

from .fanout import ExpiredSubscriptionHook, InvalidTokensHook, PushFanout
from .providers import (
    BasePushProvider,
    FirebasePushProvider,
    PushDeliveryResult,
    WebPushProvider,
)
from .schemas import (
    PushAction,
    PushPayload,
    PushResult,
    PushTarget,
    WebPushSubscription,
)

__all__ = [
    "BasePushProvider",
    "ExpiredSubscriptionHook",
    "FirebasePushProvider",
    "InvalidTokensHook",
    "PushAction",
    "PushDeliveryResult",
    "PushFanout",
    "PushPayload",
    "PushResult",
    "PushTarget",
    "WebPushProvider",
    "WebPushSubscription",
]
