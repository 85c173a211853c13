"""Push fanout across the mobile and browser gateways.

Push is best effort: a call either reaches the gateway now or is reported
as not delivered. Nothing is queued or retried. Dead device tokens and
expired browser subscriptions are handed to cleanup hooks supplied by the
caller, which owns the storage they came from.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from notification_service.core.exceptions import RateLimitException
from notification_service.infra.push.schemas import PushResult, PushTarget, WebPushSubscription

if TYPE_CHECKING:
    from notification_service.infra.push.providers.base import BasePushProvider
    from notification_service.infra.push.schemas import PushPayload
    from notification_service.infra.ratelimit.limiter import RateLimiter

logger = logging.getLogger(__name__)

InvalidTokensHook = Callable[[list[str]], Awaitable[None]]
ExpiredSubscriptionHook = Callable[[WebPushSubscription], Awaitable[None]]


class PushFanout:
    """Deliver a push to device tokens and browser subscriptions.

    Args:
        mobile: Firebase provider, or None when mobile push is not wired.
        browser: Web Push provider, or None when browser push is not wired.
        rate_limiter: Limiter holding a window for each wired provider.
        on_invalid_tokens: Async hook receiving tokens FCM reported as dead.
        on_expired_subscription: Async hook receiving each subscription the
            push service answered with 404/410.
    """

    def __init__(
        self,
        mobile: BasePushProvider | None,
        browser: BasePushProvider | None,
        rate_limiter: RateLimiter,
        *,
        on_invalid_tokens: InvalidTokensHook | None = None,
        on_expired_subscription: ExpiredSubscriptionHook | None = None,
    ) -> None:
        self._mobile = mobile
        self._browser = browser
        self._rate_limiter = rate_limiter
        self._on_invalid_tokens = on_invalid_tokens
        self._on_expired_subscription = on_expired_subscription

    @property
    def mobile_enabled(self) -> bool:
        return self._mobile is not None and self._mobile.is_configured

    @property
    def browser_enabled(self) -> bool:
        return self._browser is not None and self._browser.is_configured

    @property
    def providers(self) -> list[BasePushProvider]:
        return [p for p in (self._mobile, self._browser) if p is not None]

    def _admit(self, provider: BasePushProvider | None, transport: str) -> bool:
        """Check configuration and rate limit, recording the attempt when admitted."""
        if provider is None or not provider.is_configured:
            logger.debug("Push transport not configured, skipping", extra={"transport": transport})
            return False
        name = provider.provider_name
        if not self._rate_limiter.can_send(name):
            denial = RateLimitException(name, retry_after=self._rate_limiter.retry_after(name))
            logger.warning(f"{denial.detail}, skipping push", extra=denial.extra)
            return False
        self._rate_limiter.record(name)
        return True

    async def send_mobile_push(self, tokens: Iterable[str], notification: PushPayload) -> bool:
        """Multicast to device tokens.

        Returns:
            True if at least one token accepted the push.
        """
        valid_tokens = [t for t in tokens if t and t.strip()]
        if not valid_tokens:
            logger.debug("No device tokens to push to")
            return False
        if not self._admit(self._mobile, "mobile"):
            return False

        result = await self._mobile.send(valid_tokens, notification)

        if result.invalid_targets:
            logger.info(
                "Removing invalid device tokens",
                extra={"count": len(result.invalid_targets)},
            )
            await self._run_hook(self._on_invalid_tokens, list(result.invalid_targets))

        return result.success

    async def send_browser_push(
        self,
        subscriptions: Iterable[WebPushSubscription | Mapping[str, Any]],
        notification: PushPayload,
    ) -> bool:
        """Push to every complete browser subscription concurrently.

        Returns:
            True if at least one subscription accepted the push.
        """
        complete = [s for s in self._coerce_subscriptions(subscriptions) if s.is_complete]
        if not complete:
            logger.debug("No usable browser subscriptions to push to")
            return False
        if not self._admit(self._browser, "browser"):
            return False

        result = await self._browser.send(complete, notification)

        for subscription in result.invalid_targets:
            logger.info("Removing expired browser subscription")
            await self._run_hook(self._on_expired_subscription, subscription)

        return result.success

    async def send_push(
        self, targets: PushTarget | Mapping[str, Any], notification: PushPayload
    ) -> PushResult:
        """Run mobile and browser transports concurrently and independently."""
        if not isinstance(targets, PushTarget):
            targets = PushTarget.model_validate(targets)

        async def _skip() -> bool:
            return False

        mobile, browser = await asyncio.gather(
            self.send_mobile_push(targets.tokens, notification) if targets.has_mobile else _skip(),
            self.send_browser_push(targets.subscriptions, notification)
            if targets.has_browser
            else _skip(),
        )
        return PushResult(mobile=mobile, browser=browser)

    @staticmethod
    def _coerce_subscriptions(
        subscriptions: Iterable[WebPushSubscription | Mapping[str, Any]],
    ) -> list[WebPushSubscription]:
        coerced: list[WebPushSubscription] = []
        for item in subscriptions:
            if isinstance(item, WebPushSubscription):
                coerced.append(item)
                continue
            try:
                coerced.append(WebPushSubscription.model_validate(item))
            except ValidationError:
                logger.warning("Dropping malformed browser subscription")
        return coerced

    @staticmethod
    async def _run_hook(hook: Callable[[Any], Awaitable[None]] | None, arg: Any) -> None:
        if hook is None:
            return
        try:
            await hook(arg)
        except Exception:
            logger.exception("Push cleanup hook failed")


__all__ = ["ExpiredSubscriptionHook", "InvalidTokensHook", "PushFanout"]
