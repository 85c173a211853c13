"""Base push provider.

Push gateways accept a batch of targets (device tokens or browser
subscriptions) and report per-target outcomes. Targets the gateway says are
dead come back in ``invalid_targets`` so the caller can clean them up.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from notification_service.core.exceptions import ConfigurationException
from notification_service.infra.push.metrics import (
    push_delivery_duration_seconds,
    push_delivery_total,
    push_invalid_targets_total,
)

if TYPE_CHECKING:
    from notification_service.core.settings.push import PushSettings
    from notification_service.infra.push.schemas import PushPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushDeliveryResult:
    """Result of one gateway call covering a batch of targets.

    Attributes:
        success: True if at least one target accepted the push
        provider: Gateway name (firebase, webpush)
        success_count: Targets that accepted the push
        failure_count: Targets that rejected it
        invalid_targets: Targets the gateway reported as invalid or expired
        error: Error message when nothing was delivered
        error_code: Error category for programmatic handling
        duration_ms: Time taken in milliseconds
    """

    success: bool
    provider: str
    success_count: int = 0
    failure_count: int = 0
    invalid_targets: list[Any] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    duration_ms: int | None = None

    @classmethod
    def failure_result(
        cls,
        provider: str,
        error: str,
        error_code: str | None = None,
        failure_count: int = 0,
    ) -> PushDeliveryResult:
        return cls(
            success=False,
            provider=provider,
            failure_count=failure_count,
            error=error,
            error_code=error_code,
        )


class BasePushProvider(ABC):
    """Abstract base class for push gateways.

    ``send()`` adds the per-call timeout, timing, metrics and logging around
    ``_do_send()`` and converts every exception into a failed result.
    Providers that make one outbound call per target set
    ``timeout_per_target`` and bound each call themselves, so one slow
    target cannot discard the outcomes of the others.
    """

    timeout_per_target = False

    def __init__(self, settings: PushSettings) -> None:
        self._settings = settings
        self._timeout = settings.timeout

        logger.info(
            f"{self.provider_name} push provider initialized",
            extra={"provider": self.provider_name, "configured": self.is_configured},
        )

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @property
    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    async def _do_send(self, targets: Sequence[Any], payload: PushPayload) -> PushDeliveryResult:
        """Deliver ``payload`` to every target in one gateway interaction."""
        ...

    async def _do_health_check(self) -> bool:
        """Default probe: credentials load without error."""
        return True

    async def send(self, targets: Sequence[Any], payload: PushPayload) -> PushDeliveryResult:
        """Send to a batch of targets with timeout and error handling."""
        start_time = time.perf_counter()

        try:
            if not self.is_configured:
                raise ConfigurationException(
                    detail=f"{self.provider_name} backend is not configured",
                    extra={"provider": self.provider_name},
                )
            if self.timeout_per_target:
                result = await self._do_send(targets, payload)
            else:
                result = await asyncio.wait_for(
                    self._do_send(targets, payload), timeout=self._timeout
                )
        except TimeoutError:
            result = PushDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"{self.provider_name} call timed out after {self._timeout}s",
                error_code="TIMEOUT",
                failure_count=len(targets),
            )
        except ConfigurationException as e:
            result = PushDeliveryResult.failure_result(
                provider=self.provider_name,
                error=e.detail,
                error_code="NOT_CONFIGURED",
                failure_count=len(targets),
            )
        except Exception as e:
            logger.exception(
                f"Unexpected error in {self.provider_name} push provider",
                extra={"provider": self.provider_name, "targets": len(targets)},
            )
            result = PushDeliveryResult.failure_result(
                provider=self.provider_name,
                error=str(e),
                error_code="UNEXPECTED_ERROR",
                failure_count=len(targets),
            )

        elapsed = time.perf_counter() - start_time
        result = replace(result, duration_ms=int(elapsed * 1000))

        status = "success" if result.success else "failed"
        if result.error_code == "TIMEOUT":
            status = "timeout"
        push_delivery_total.labels(provider=self.provider_name, status=status).inc()
        push_delivery_duration_seconds.labels(provider=self.provider_name).observe(elapsed)
        if result.invalid_targets:
            push_invalid_targets_total.labels(provider=self.provider_name).inc(
                len(result.invalid_targets)
            )

        log = logger.info if result.success else logger.warning
        log(
            f"Push {'sent' if result.success else 'failed'} via {self.provider_name}",
            extra={
                "provider": self.provider_name,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
                "invalid_targets": len(result.invalid_targets),
                "error": result.error,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    async def health_check(self) -> bool:
        if not self.is_configured:
            return False
        try:
            return await asyncio.wait_for(self._do_health_check(), timeout=self._timeout)
        except Exception as e:
            logger.warning(
                f"{self.provider_name} health check failed",
                extra={"provider": self.provider_name, "error": str(e)},
            )
            return False


__all__ = ["BasePushProvider", "PushDeliveryResult"]
