"""Email backends.

Both backends implement ``EmailProvider``; ``BaseEmailProvider`` supplies
the shared timeout, metrics and error-to-result conversion.
"""

from __future__ import annotations

from .base import BaseEmailProvider, EmailDeliveryResult, EmailProvider
from .sendgrid import SendGridProvider
from .smtp import SMTPProvider

__all__ = [
    "BaseEmailProvider",
    "EmailDeliveryResult",
    "EmailProvider",
    "SMTPProvider",
    "SendGridProvider",
]
