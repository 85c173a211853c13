"""Push notification payloads and targets."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PushUrgency = Literal["very-low", "low", "normal", "high"]


class PushAction(BaseModel):
    """A button shown on a browser notification."""

    action: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=128)
    icon: str | None = None


class PushPayload(BaseModel):
    """Content of a push notification, shared by mobile and browser transports.

    Mobile-only fields (``channel_id``, ``color``, ``sound``, ``category``)
    and browser-only fields (``actions``, ``require_interaction``, ``tag``,
    ``renotify``) are ignored by the transport they do not apply to.

    Example:
        payload = PushPayload(
            title="New offer received",
            body="An offer of $450,000 was submitted on 12 Oak St.",
            data={"property_id": "prop_123"},
        )
    """

    title: str = Field(min_length=1, max_length=256)
    body: str = Field(max_length=4096)
    icon: str | None = None
    badge: str | None = None
    image: str | None = None
    data: dict[str, str] = Field(default_factory=dict)

    # Browser
    actions: list[PushAction] = Field(default_factory=list)
    require_interaction: bool = False
    silent: bool = False
    tag: str | None = None
    renotify: bool = False

    # Mobile
    channel_id: str = "default"
    color: str = "#4A90E2"
    sound: str = "default"
    category: str = "DEFAULT"
    badge_count: int = Field(default=1, ge=0)

    # Delivery
    ttl: int | None = Field(default=None, ge=0, description="Seconds; None uses the configured default")
    urgency: PushUrgency = "high"
    topic: str | None = Field(default=None, max_length=32)

    def web_payload(self) -> dict[str, Any]:
        """JSON body handed to the browser's service worker."""
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "image": self.image,
            "data": self.data,
            "actions": [a.model_dump(exclude_none=True) for a in self.actions],
            "requireInteraction": self.require_interaction,
            "silent": self.silent,
            "tag": self.tag,
            "renotify": self.renotify,
        }


class SubscriptionKeys(BaseModel):
    p256dh: str = ""
    auth: str = ""


class WebPushSubscription(BaseModel):
    """A browser PushSubscription as serialized by ``subscription.toJSON()``."""

    endpoint: str = ""
    keys: SubscriptionKeys = Field(default_factory=SubscriptionKeys)
    expiration_time: int | None = Field(default=None, alias="expirationTime")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def is_complete(self) -> bool:
        return bool(self.endpoint and self.keys.p256dh and self.keys.auth)

    def subscription_info(self) -> dict[str, Any]:
        """Shape expected by ``pywebpush.webpush``."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.keys.p256dh, "auth": self.keys.auth},
        }


class PushTarget(BaseModel):
    """Where a push goes: device tokens and/or browser subscriptions."""

    tokens: list[str] = Field(default_factory=list)
    subscriptions: list[WebPushSubscription] = Field(default_factory=list)

    @property
    def has_mobile(self) -> bool:
        return any(t.strip() for t in self.tokens)

    @property
    def has_browser(self) -> bool:
        return bool(self.subscriptions)


class PushResult(BaseModel):
    """Outcome of a push fanout; ``delivered`` is true if any transport succeeded."""

    mobile: bool = False
    browser: bool = False

    @property
    def delivered(self) -> bool:
        return self.mobile or self.browser


__all__ = [
    "PushAction",
    "PushPayload",
    "PushResult",
    "PushTarget",
    "PushUrgency",
    "SubscriptionKeys",
    "WebPushSubscription",
]
