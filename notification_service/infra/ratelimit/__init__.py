"""Per-backend delivery rate limiting."""

from __future__ import annotations

from .limiter import DEFAULT_LIMITS, DEFAULT_WINDOW_SECONDS, RateLimiter, backend_key
from .status import Backend, RateLimitWindow

__all__ = [
    "DEFAULT_LIMITS",
    "DEFAULT_WINDOW_SECONDS",
    "Backend",
    "RateLimitWindow",
    "RateLimiter",
    "backend_key",
]
