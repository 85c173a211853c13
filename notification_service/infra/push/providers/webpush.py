"""Browser Web Push provider (VAPID) built on pywebpush.

Each subscription is delivered independently and concurrently, each call
bounded by its own timeout. A 404 or 410
from the push service means the subscription is gone for good.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from pywebpush import WebPushException, webpush

from notification_service.infra.ratelimit.status import Backend

from .base import BasePushProvider, PushDeliveryResult

if TYPE_CHECKING:
    from notification_service.infra.push.schemas import PushPayload, WebPushSubscription

logger = logging.getLogger(__name__)

EXPIRED_STATUS_CODES = frozenset({404, 410})


class _Outcome(StrEnum):
    SENT = "sent"
    EXPIRED = "expired"
    FAILED = "failed"


def _endpoint_hint(endpoint: str) -> str:
    # Endpoints embed a per-device secret path; only the host is logged.
    return urlsplit(endpoint).netloc or "<invalid endpoint>"


class WebPushProvider(BasePushProvider):
    """Browser push signed with the configured VAPID key pair."""

    timeout_per_target = True

    @property
    def provider_name(self) -> str:
        return Backend.WEBPUSH.value

    @property
    def is_configured(self) -> bool:
        return self._settings.webpush_configured

    @property
    def public_key(self) -> str | None:
        """VAPID public key browsers need for ``pushManager.subscribe``."""
        return self._settings.vapid_public_key

    def _deliver_sync(
        self, subscription: WebPushSubscription, body: str, payload: PushPayload
    ) -> _Outcome:
        private_key = self._settings.vapid_private_key
        headers = {"Urgency": payload.urgency}
        if payload.topic:
            headers["Topic"] = payload.topic
        ttl = payload.ttl if payload.ttl is not None else self._settings.default_ttl

        try:
            webpush(
                subscription_info=subscription.subscription_info(),
                data=body,
                vapid_private_key=private_key.get_secret_value() if private_key else None,
                # pywebpush adds aud/exp to the claims dict, so it must be fresh per call.
                vapid_claims={"sub": self._settings.vapid_subject},
                ttl=ttl,
                headers=headers,
                timeout=self._timeout,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code in EXPIRED_STATUS_CODES:
                return _Outcome.EXPIRED
            logger.warning(
                "Web push delivery failed",
                extra={
                    "endpoint": _endpoint_hint(subscription.endpoint),
                    "status_code": status_code,
                    "error": str(e),
                },
            )
            return _Outcome.FAILED
        return _Outcome.SENT

    async def _deliver(
        self, subscription: WebPushSubscription, body: str, payload: PushPayload
    ) -> _Outcome:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._deliver_sync, subscription, body, payload),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.warning(
                "Web push delivery timed out",
                extra={"endpoint": _endpoint_hint(subscription.endpoint), "timeout": self._timeout},
            )
            return _Outcome.FAILED
        except Exception as e:
            logger.warning(
                "Web push delivery raised",
                extra={"endpoint": _endpoint_hint(subscription.endpoint), "error": str(e)},
            )
            return _Outcome.FAILED

    async def _do_send(
        self, targets: Sequence[WebPushSubscription], payload: PushPayload
    ) -> PushDeliveryResult:
        subscriptions = list(targets)
        body = json.dumps(payload.web_payload())

        outcomes = await asyncio.gather(
            *(self._deliver(subscription, body, payload) for subscription in subscriptions)
        )

        sent = sum(1 for outcome in outcomes if outcome is _Outcome.SENT)
        expired = [
            subscription
            for subscription, outcome in zip(subscriptions, outcomes, strict=True)
            if outcome is _Outcome.EXPIRED
        ]
        failed = len(subscriptions) - sent

        return PushDeliveryResult(
            success=sent > 0,
            provider=self.provider_name,
            success_count=sent,
            failure_count=failed,
            invalid_targets=expired,
            error=None if sent else "No subscription accepted the message",
            error_code=None if sent else "ALL_SUBSCRIPTIONS_FAILED",
        )


__all__ = ["EXPIRED_STATUS_CODES", "WebPushProvider"]
