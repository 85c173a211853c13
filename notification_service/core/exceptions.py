"""Custom exception classes for notification delivery."""

from __future__ import annotations

from typing import Any


class NotificationException(Exception):
    """Base notification exception.

    All custom exceptions should inherit from this class. The fields mirror
    RFC 7807 problem details so collaborators can surface them unchanged.

    Attributes:
        detail: Human-readable error message.
        type: Error type identifier.
        title: Short, human-readable summary of the problem type.
        extra: Additional context-specific information about the error.

    Example:
            raise NotificationException(
            detail="Email payload rejected",
            type="invalid-payload",
            extra={"field": "to"},
        )
    """

    default_type = "notification-error"
    default_title = "Notification Error"

    def __init__(
        self,
        detail: str,
        type: str | None = None,
        title: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize notification exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            extra: Additional context about the error.
        """
        self.detail = detail
        self.type = type or self.default_type
        self.title = title or self.default_title
        self.extra = extra or {}
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Render the exception as a problem-details dictionary."""
        return {
            "type": self.type,
            "title": self.title,
            "detail": self.detail,
            **self.extra,
        }


class ValidationException(NotificationException):
    """Raised for malformed payloads or requests.

    Fails fast: no backend is invoked and nothing is retried.

    Example:
            raise ValidationException(
            detail="Email address is invalid",
            extra={"field": "to"},
        )
    """

    default_type = "validation-error"
    default_title = "Validation Error"


class ConfigurationException(NotificationException):
    """Raised when a backend is built without its required settings."""

    default_type = "configuration-error"
    default_title = "Configuration Error"


class TransportException(NotificationException):
    """A single backend call failed.

    Providers catch this at their boundary and turn it into a failed
    delivery result, which triggers failover or a queue retry.
    """

    default_type = "transport-error"
    default_title = "Transport Error"

    def __init__(
        self,
        detail: str,
        provider: str,
        error_code: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize transport exception.

        Args:
            detail: Human-readable error message.
            provider: Name of the backend that failed.
            error_code: Error category for programmatic handling.
            extra: Additional context about the error.
        """
        self.provider = provider
        self.error_code = error_code or "TRANSPORT_ERROR"
        super().__init__(
            detail=detail,
            extra={"provider": provider, "error_code": self.error_code, **(extra or {})},
        )


class RateLimitException(NotificationException):
    """A backend's rate-limit window is exhausted.

    Never raised to callers: it classifies the skip or deferral in logs.
    """

    default_type = "rate-limit-exceeded"
    default_title = "Too Many Requests"

    def __init__(self, backend: str, retry_after: float | None = None) -> None:
        self.backend = backend
        self.retry_after = retry_after
        super().__init__(
            detail=f"Rate limit exceeded for {backend}",
            extra={"backend": backend, "retry_after": retry_after},
        )


class TerminalFailureException(NotificationException):
    """All backends and all retries are exhausted for a queued job."""

    default_type = "terminal-failure"
    default_title = "Delivery Failed"

    def __init__(self, job_id: str, attempts: int) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(
            detail=f"Email job {job_id} failed after {attempts} attempts",
            extra={"job_id": job_id, "attempts": attempts},
        )


__all__ = [
    "ConfigurationException",
    "NotificationException",
    "RateLimitException",
    "TerminalFailureException",
    "TransportException",
    "ValidationException",
]
