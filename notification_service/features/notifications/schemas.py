"""Request, result and status models for the notification service."""

from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from notification_service.core.settings.email import EmailStrategy
from notification_service.infra.email.schemas import EmailPayload, EmailPriority
from notification_service.infra.push.schemas import PushPayload, PushTarget, WebPushSubscription


class NotificationChannel(StrEnum):
    """Which transports a notification goes out on."""

    EMAIL = "email"
    PUSH = "push"
    BOTH = "both"

    @property
    def includes_email(self) -> bool:
        return self in (NotificationChannel.EMAIL, NotificationChannel.BOTH)

    @property
    def includes_push(self) -> bool:
        return self in (NotificationChannel.PUSH, NotificationChannel.BOTH)


class PushRequest(BaseModel):
    """Push content plus the devices and browsers to send it to."""

    notification: PushPayload
    tokens: list[str] = Field(default_factory=list)
    subscriptions: list[WebPushSubscription] = Field(default_factory=list)

    @property
    def targets(self) -> PushTarget:
        return PushTarget(tokens=self.tokens, subscriptions=self.subscriptions)


class NotificationRequest(BaseModel):
    """A notification addressed to one user.

    Example:
        request = NotificationRequest(
            type="both",
            email=EmailPayload(to="buyer@example.com", subject="Offer accepted", html="..."),
            push=PushRequest(
                notification=PushPayload(title="Offer accepted", body="..."),
                tokens=["fcm-token"],
            ),
            priority="high",
        )
    """

    type: NotificationChannel = Field(validation_alias=AliasChoices("type", "channel"))
    email: EmailPayload | None = None
    push: PushRequest | None = None
    priority: EmailPriority = EmailPriority.NORMAL

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def validate_payloads(self) -> NotificationRequest:
        """The payload for every requested transport must be present."""
        if self.type.includes_email and self.email is None:
            msg = f"'{self.type.value}' notifications require an email payload"
            raise ValueError(msg)
        if self.type.includes_push and self.push is None:
            msg = f"'{self.type.value}' notifications require a push payload"
            raise ValueError(msg)
        return self


class NotificationResult(BaseModel):
    """Immediate outcome per channel.

    ``email`` is False both for a definitive failure and for an urgent email
    that was queued for retry after its direct attempt failed.
    """

    email: bool = False
    push: bool = False


class BulkSendResult(BaseModel):
    """Totals for a bulk send. Each item counts once."""

    success: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.success + self.failed


class RateLimitStatus(BaseModel):
    limit: int
    request_count: int
    remaining: int
    window_reset_at: float


class EmailStatus(BaseModel):
    sendgrid: bool
    smtp: bool
    strategy: EmailStrategy
    primary: str | None


class PushStatus(BaseModel):
    firebase: bool
    webpush: bool
    vapid_public_key: str | None = None


class QueueStatus(BaseModel):
    length: int
    running: bool


class ServicesStatus(BaseModel):
    """Snapshot returned by ``NotificationService.get_services_status()``."""

    email: EmailStatus
    push: PushStatus
    queue: QueueStatus
    rate_limits: dict[str, RateLimitStatus]


__all__ = [
    "BulkSendResult",
    "EmailStatus",
    "NotificationChannel",
    "NotificationRequest",
    "NotificationResult",
    "PushRequest",
    "PushStatus",
    "QueueStatus",
    "RateLimitStatus",
    "ServicesStatus",
]
