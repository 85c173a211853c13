"""Rate limit window types.

Each delivery backend owns one fixed window: a request counter, the
configured limit, and the monotonic instant the window rolls over.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Backend(str, Enum):
    """Names of the rate-limited delivery backends."""

    SENDGRID = "sendgrid"
    SMTP = "smtp"
    FIREBASE = "firebase"
    WEBPUSH = "webpush"


@dataclass
class RateLimitWindow:
    """Fixed-window counter for one backend.

    Attributes:
        limit: Maximum sends allowed per window.
        request_count: Sends recorded in the current window.
        window_reset_at: Monotonic time after which the window resets.
    """

    limit: int
    request_count: int = 0
    window_reset_at: float = 0.0

    @property
    def remaining(self) -> int:
        return max(self.limit - self.request_count, 0)

    @property
    def exhausted(self) -> bool:
        return self.request_count >= self.limit

    def to_dict(self) -> dict[str, float | int]:
        return {
            "limit": self.limit,
            "request_count": self.request_count,
            "remaining": self.remaining,
            "window_reset_at": self.window_reset_at,
        }


__all__ = [
    "Backend",
    "RateLimitWindow",
]
