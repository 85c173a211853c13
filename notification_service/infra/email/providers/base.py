"""Base email provider protocol and abstract class.

Defines the contract every email backend implements.

Usage:
    class MyProvider(BaseEmailProvider):
        async def _do_send(self, payload: EmailPayload) -> EmailDeliveryResult:
            # Implementation
            ...
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from notification_service.core.exceptions import ConfigurationException, TransportException
from notification_service.infra.email.metrics import (
    email_delivery_duration_seconds,
    email_delivery_total,
)

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings
    from notification_service.infra.email.schemas import EmailPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailDeliveryResult:
    """Result of one backend delivery attempt.

    Attributes:
        success: Whether the backend accepted the message
        provider: Backend name (sendgrid, smtp)
        message_id: Backend-assigned message ID, when one is returned
        error: Error message if failed
        error_code: Error category for programmatic handling
        duration_ms: Time taken in milliseconds
        metadata: Backend-specific metadata
    """

    success: bool
    provider: str
    message_id: str | None = None
    error: str | None = None
    error_code: str | None = None
    duration_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and not self.error:
            object.__setattr__(self, "error", "Unknown error")

    @classmethod
    def success_result(
        cls,
        provider: str,
        message_id: str | None = None,
        duration_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> EmailDeliveryResult:
        """Create a successful delivery result."""
        return cls(
            success=True,
            provider=provider,
            message_id=message_id,
            duration_ms=duration_ms,
            metadata=metadata or {},
        )

    @classmethod
    def failure_result(
        cls,
        provider: str,
        error: str,
        error_code: str | None = None,
        duration_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> EmailDeliveryResult:
        """Create a failed delivery result."""
        return cls(
            success=False,
            provider=provider,
            error=error,
            error_code=error_code,
            duration_ms=duration_ms,
            metadata=metadata or {},
        )


@runtime_checkable
class EmailProvider(Protocol):
    """Protocol defining the email backend interface.

    The failover sender depends only on this, so tests can pass any object
    with the same shape.
    """

    @property
    def provider_name(self) -> str:
        """Backend name used for rate limiting, metrics and logs."""
        ...

    @property
    def is_configured(self) -> bool:
        """Whether every credential the backend needs is present."""
        ...

    async def send(self, payload: EmailPayload) -> EmailDeliveryResult:
        """Deliver one email. Never raises for transport faults."""
        ...

    async def health_check(self) -> bool:
        """Best-effort connectivity probe."""
        ...


class BaseEmailProvider(ABC):
    """Abstract base class for email backends.

    ``send()`` wraps ``_do_send()`` with the per-call timeout, timing,
    metrics, logging and error conversion, so a subclass only talks to its
    backend. Any exception raised by ``_do_send()`` (``TransportException``
    included) comes back as a failed ``EmailDeliveryResult``.

    Subclasses must implement:
    - provider_name property
    - is_configured property
    - _do_send(): Actual sending logic
    - _do_health_check(): Health check logic
    """

    def __init__(self, settings: EmailSettings) -> None:
        """Initialize provider with email settings.

        Args:
            settings: Email settings holding credentials and sender identity
        """
        self._settings = settings
        self._timeout = settings.timeout

        logger.info(
            f"{self.provider_name} provider initialized",
            extra={"provider": self.provider_name, "configured": self.is_configured},
        )

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        ...

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the backend has the credentials it needs."""
        ...

    @abstractmethod
    async def _do_send(self, payload: EmailPayload) -> EmailDeliveryResult:
        """Implement the actual sending logic."""
        ...

    @abstractmethod
    async def _do_health_check(self) -> bool:
        """Implement the actual health check logic."""
        ...

    @property
    def settings(self) -> EmailSettings:
        return self._settings

    def _sender(self) -> tuple[str, str]:
        return str(self._settings.from_email), self._settings.from_name

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationException(
                detail=f"{self.provider_name} backend is not configured",
                extra={"provider": self.provider_name},
            )

    async def send(self, payload: EmailPayload) -> EmailDeliveryResult:
        """Send an email with timeout, timing and error handling.

        Args:
            payload: The email to send

        Returns:
            EmailDeliveryResult with delivery status
        """
        start_time = time.perf_counter()

        try:
            self._require_configured()
            result = await asyncio.wait_for(self._do_send(payload), timeout=self._timeout)
        except TimeoutError:
            result = EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"{self.provider_name} call timed out after {self._timeout}s",
                error_code="TIMEOUT",
            )
        except TransportException as e:
            result = EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=e.detail,
                error_code=e.error_code,
                metadata=e.extra,
            )
        except ConfigurationException as e:
            result = EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=e.detail,
                error_code="NOT_CONFIGURED",
            )
        except Exception as e:
            logger.exception(
                f"Unexpected error in {self.provider_name} provider",
                extra={
                    "provider": self.provider_name,
                    "to": payload.masked_recipient,
                    "error": str(e),
                },
            )
            result = EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=str(e),
                error_code="UNEXPECTED_ERROR",
            )

        elapsed = time.perf_counter() - start_time
        if result.duration_ms is None:
            result = replace(result, duration_ms=int(elapsed * 1000))

        status = "success" if result.success else "failed"
        if result.error_code == "TIMEOUT":
            status = "timeout"
        email_delivery_total.labels(provider=self.provider_name, status=status).inc()
        email_delivery_duration_seconds.labels(provider=self.provider_name).observe(elapsed)

        if result.success:
            logger.info(
                f"Email sent via {self.provider_name}",
                extra={
                    "provider": self.provider_name,
                    "message_id": result.message_id,
                    "to": payload.masked_recipient,
                    "duration_ms": result.duration_ms,
                },
            )
        else:
            logger.warning(
                f"Email send failed via {self.provider_name}",
                extra={
                    "provider": self.provider_name,
                    "to": payload.masked_recipient,
                    "error": result.error,
                    "error_code": result.error_code,
                    "duration_ms": result.duration_ms,
                },
            )

        return result

    async def health_check(self) -> bool:
        """Check if the backend is reachable.

        Returns:
            True if the backend is configured and answered the probe
        """
        if not self.is_configured:
            return False
        try:
            healthy = await asyncio.wait_for(self._do_health_check(), timeout=self._timeout)
        except Exception as e:
            logger.warning(
                f"{self.provider_name} health check failed",
                extra={"provider": self.provider_name, "error": str(e)},
            )
            return False

        logger.debug(
            f"{self.provider_name} health check: {'healthy' if healthy else 'unhealthy'}",
            extra={"provider": self.provider_name, "healthy": healthy},
        )
        return healthy


__all__ = [
    "BaseEmailProvider",
    "EmailDeliveryResult",
    "EmailProvider",
]
