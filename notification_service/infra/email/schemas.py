"""Email payloads, queue jobs and address helpers."""

from __future__ import annotations

import re
import secrets
import string
import time
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, Field

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_JOB_ID_ALPHABET = string.ascii_lowercase + string.digits


class EmailPriority(StrEnum):
    """Delivery priority. ``high`` and ``urgent`` jump the queue."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def is_elevated(self) -> bool:
        return self in (EmailPriority.HIGH, EmailPriority.URGENT)


def is_valid_email(address: str | None) -> bool:
    """Basic shape check: something@something.tld with no whitespace."""
    return bool(address) and _EMAIL_PATTERN.match(address) is not None


def mask_email(address: str) -> str:
    """Mask an address for logs.

    Keeps at most the first three characters of the local part:
    ``alice@example.com`` -> ``ali***@example.com``. Input without a domain
    becomes its first three characters followed by ``***``.
    """
    local, sep, domain = address.partition("@")
    if not sep or not domain:
        return f"{address[:3]}***"
    return f"{local[:3]}***@{domain}"


def strip_html(html: str) -> str:
    """Derive a plain-text body from HTML by dropping tags and collapsing whitespace."""
    return _WHITESPACE_PATTERN.sub(" ", _TAG_PATTERN.sub("", html)).strip()


def generate_job_id(now_ms: int | None = None) -> str:
    """Return an id of the form ``email_<epoch ms>_<9 random chars>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_JOB_ID_ALPHABET) for _ in range(9))
    return f"email_{now_ms}_{suffix}"


class EmailPayload(BaseModel):
    """A single transactional email.

    The recipient is kept as a plain string so a malformed address reaches
    the failover sender, which rejects it without calling any backend.

    Example:
        payload = EmailPayload(
            to="user@example.com",
            subject="Your viewing is confirmed",
            html="<p>See you at <b>10:00</b></p>",
        )
    """

    to: str = Field(max_length=320, description="Recipient address")
    subject: str = Field(max_length=998, description="Subject line")
    html: str = Field(description="HTML body")
    text: str | None = Field(default=None, description="Plain text body")

    @property
    def has_valid_recipient(self) -> bool:
        return is_valid_email(self.to)

    @property
    def masked_recipient(self) -> str:
        return mask_email(self.to)

    def plain_text(self) -> str:
        """Return ``text`` or, when absent, a tag-stripped rendering of ``html``."""
        if self.text:
            return self.text
        return strip_html(self.html)


@dataclass
class QueuedEmailJob:
    """An email waiting in the delivery queue.

    Only the worker loop mutates ``attempts`` and ``scheduled_at``.

    Attributes:
        payload: The email to deliver.
        id: Unique job identifier.
        priority: Queue priority the job was enqueued with.
        max_attempts: Attempts allowed before the job is dropped.
        attempts: Failed attempts so far.
        scheduled_at: Monotonic time before which the job must not run.
        created_at: Monotonic time the job was created.
    """

    payload: EmailPayload
    id: str = field(default_factory=generate_job_id)
    priority: EmailPriority = EmailPriority.NORMAL
    max_attempts: int = 3
    attempts: int = 0
    scheduled_at: float = 0.0
    created_at: float = 0.0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def is_due(self, now: float) -> bool:
        return self.scheduled_at <= now


__all__ = [
    "EmailPayload",
    "EmailPriority",
    "QueuedEmailJob",
    "generate_job_id",
    "is_valid_email",
    "mask_email",
    "strip_html",
]
