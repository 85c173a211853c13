"""In-process fixed-window rate limiter for delivery backends.

Checking and recording are separate operations: ``can_send`` only reads
(after rolling an expired window) and ``record`` only counts. Callers ask
first, attempt the send, then record the attempt.

Windows are independent per backend and are never synchronized with each
other. State lives in memory only; nothing is shared across processes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from enum import Enum

from notification_service.infra.ratelimit.metrics import rate_limit_hits_total
from notification_service.infra.ratelimit.status import Backend, RateLimitWindow

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0

DEFAULT_LIMITS: dict[str, int] = {
    Backend.SENDGRID.value: 100,
    Backend.SMTP.value: 60,
    Backend.FIREBASE.value: 1000,
    Backend.WEBPUSH.value: 1000,
}


def backend_key(backend: str) -> str:
    """Normalize a backend name or ``Backend`` member to its plain string."""
    return backend.value if isinstance(backend, Enum) else backend


class RateLimiter:
    """Per-backend fixed-window limiter.

    Example:
        limiter = RateLimiter({"sendgrid": 100, "smtp": 60})

        if limiter.can_send("sendgrid"):
            await provider.send(payload)
            limiter.record("sendgrid")

    Args:
        limits: Backend name to requests-per-window mapping.
        window_seconds: Length of each window.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        limits: Mapping[str, int] | None = None,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        for backend, limit in (limits if limits is not None else DEFAULT_LIMITS).items():
            self.register(backend, limit)

    def register(self, backend: str, limit: int) -> None:
        """Add (or replace) a backend with a fresh window."""
        if limit < 0:
            raise ValueError(f"Rate limit for {backend} must be >= 0, got {limit}")
        self._windows[backend_key(backend)] = RateLimitWindow(
            limit=limit,
            window_reset_at=self._clock() + self.window_seconds,
        )

    @property
    def backends(self) -> list[str]:
        return list(self._windows)

    def _current(self, backend: str) -> RateLimitWindow:
        window = self._windows[backend_key(backend)]
        now = self._clock()
        if now > window.window_reset_at:
            window.request_count = 0
            window.window_reset_at = now + self.window_seconds
        return window

    def can_send(self, backend: str) -> bool:
        """Return whether ``backend`` is under its limit. Never increments.

        Raises:
            KeyError: If the backend was never registered.
        """
        window = self._current(backend)
        if window.exhausted:
            rate_limit_hits_total.labels(backend=backend_key(backend)).inc()
            logger.debug(
                "Rate limit reached",
                extra={
                    "backend": backend_key(backend),
                    "limit": window.limit,
                    "window_reset_at": window.window_reset_at,
                },
            )
            return False
        return True

    def record(self, backend: str) -> None:
        """Count one send attempt against ``backend``'s current window."""
        self._current(backend).request_count += 1

    def can_send_any(self, backends: Iterable[str]) -> bool:
        """Return whether at least one of ``backends`` is under its limit.

        Unlike ``can_send`` this accepts unknown names and treats them as
        unavailable, so callers can pass "every enabled backend" lists.
        """
        return any(
            self.can_send(backend)
            for backend in backends
            if backend_key(backend) in self._windows
        )

    def retry_after(self, backend: str) -> float:
        """Seconds until ``backend``'s window resets (0 when it can send)."""
        window = self._current(backend)
        if not window.exhausted:
            return 0.0
        return max(window.window_reset_at - self._clock(), 0.0)

    def window(self, backend: str) -> RateLimitWindow:
        """Return a copy of ``backend``'s current window."""
        window = self._current(backend)
        return RateLimitWindow(
            limit=window.limit,
            request_count=window.request_count,
            window_reset_at=window.window_reset_at,
        )

    def snapshot(self) -> dict[str, RateLimitWindow]:
        """Return copies of every backend's current window."""
        return {backend: self.window(backend) for backend in self._windows}


__all__ = ["DEFAULT_LIMITS", "DEFAULT_WINDOW_SECONDS", "RateLimiter", "backend_key"]
