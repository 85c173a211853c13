"""Ordered failover across email backends.

The sender walks its backends in strategy order and stops at the first one
that accepts the message. A backend is skipped when it is not configured
or its rate-limit window is exhausted; every attempt that is made counts
against that backend's window.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from notification_service.core.exceptions import ConfigurationException, RateLimitException
from notification_service.infra.email.providers.base import EmailProvider

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailStrategy
    from notification_service.infra.email.schemas import EmailPayload
    from notification_service.infra.ratelimit.limiter import RateLimiter

logger = logging.getLogger(__name__)


class EmailFailoverSender:
    """Send an email through the first backend that accepts it.

    Args:
        providers: Backends in primary-first order (API service, then SMTP).
        rate_limiter: Limiter with a window registered for every provider.
        strategy: ``primary-first`` keeps the given order,
            ``secondary-first`` reverses it.

    Raises:
        ConfigurationException: If a provider has no rate-limit window.

    Example:
        sender = EmailFailoverSender([sendgrid, smtp], limiter, "primary-first")
        delivered = await sender.send(payload)
    """

    def __init__(
        self,
        providers: Sequence[EmailProvider],
        rate_limiter: RateLimiter,
        strategy: EmailStrategy = "primary-first",
    ) -> None:
        self._rate_limiter = rate_limiter
        self._strategy = strategy

        ordered = list(providers)
        if strategy == "secondary-first":
            ordered.reverse()

        for provider in ordered:
            if provider.provider_name not in rate_limiter.backends:
                raise ConfigurationException(
                    detail=f"No rate limit registered for {provider.provider_name}",
                    extra={"provider": provider.provider_name},
                )

        # Availability is fixed at construction.
        self._providers = [p for p in ordered if p.is_configured]
        self._all_providers = ordered

        if not self._providers:
            logger.warning("No email backends are configured; email delivery is disabled")

    @property
    def strategy(self) -> EmailStrategy:
        return self._strategy

    @property
    def providers(self) -> list[EmailProvider]:
        """Every provider in strategy order, configured or not."""
        return list(self._all_providers)

    @property
    def enabled_backends(self) -> list[str]:
        """Names of configured backends in the order they are tried."""
        return [p.provider_name for p in self._providers]

    def primary_backend(self) -> str | None:
        """Name of the backend tried first, or ``None`` when none is configured."""
        return self._providers[0].provider_name if self._providers else None

    def is_enabled(self, backend: str) -> bool:
        return backend in self.enabled_backends

    async def send(self, payload: EmailPayload) -> bool:
        """Try each backend in order until one delivers.

        Returns:
            True as soon as a backend accepts the email; False for an invalid
            recipient (no backend is called) or when every backend was
            skipped or failed.
        """
        masked = payload.masked_recipient

        if not payload.has_valid_recipient:
            logger.warning("Rejected email with invalid recipient", extra={"to": masked})
            return False

        for provider in self._providers:
            name = provider.provider_name

            if not self._rate_limiter.can_send(name):
                denial = RateLimitException(name, retry_after=self._rate_limiter.retry_after(name))
                logger.info(
                    f"{denial.detail}, skipping email backend",
                    extra={**denial.extra, "to": masked},
                )
                continue

            self._rate_limiter.record(name)
            logger.debug("Attempting email delivery", extra={"provider": name, "to": masked})

            try:
                result = await provider.send(payload)
            except Exception:
                logger.exception(
                    "Email backend raised during send",
                    extra={"provider": name, "to": masked},
                )
                continue

            if result.success:
                logger.info(
                    "Email delivered",
                    extra={
                        "provider": name,
                        "to": masked,
                        "message_id": result.message_id,
                    },
                )
                return True

            logger.warning(
                "Email backend failed, trying next",
                extra={
                    "provider": name,
                    "to": masked,
                    "error": result.error,
                    "error_code": result.error_code,
                },
            )

        logger.error(
            "All email backends failed",
            extra={"to": masked, "backends": self.enabled_backends},
        )
        return False


__all__ = ["EmailFailoverSender"]
