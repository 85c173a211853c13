"""Email delivery: backends, failover and the delivery queue.

Usage:
    from notification_service.infra.email import EmailFailoverSender, EmailPayload

    sender = EmailFailoverSender([sendgrid, smtp], limiter)
    await sender.send(EmailPayload(to="user@example.com", subject="Hi", html="<p>Hi</p>"))
"""

from __future__ import annotations

from .failover import EmailFailoverSender
from .providers import (
    BaseEmailProvider,
    EmailDeliveryResult,
    EmailProvider,
    SendGridProvider,
    SMTPProvider,
)
from .queue import EmailDeliveryQueue
from .schemas import (
    EmailPayload,
    EmailPriority,
    QueuedEmailJob,
    is_valid_email,
    mask_email,
    strip_html,
)

__all__ = [
    "BaseEmailProvider",
    "EmailDeliveryQueue",
    "EmailDeliveryResult",
    "EmailFailoverSender",
    "EmailPayload",
    "EmailPriority",
    "EmailProvider",
    "QueuedEmailJob",
    "SMTPProvider",
    "SendGridProvider",
    "is_valid_email",
    "mask_email",
    "strip_html",
]
