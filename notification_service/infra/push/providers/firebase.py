"""Firebase Cloud Messaging provider for mobile devices.

One multicast call per 500 tokens, sent concurrently. The Admin SDK is
synchronous, so each call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin import exceptions as firebase_exceptions

from notification_service.infra.ratelimit.status import Backend

from .base import BasePushProvider, PushDeliveryResult

if TYPE_CHECKING:
    from notification_service.core.settings.push import PushSettings
    from notification_service.infra.push.schemas import PushPayload

logger = logging.getLogger(__name__)

# FCM rejects multicast messages addressed to more tokens than this.
MAX_MULTICAST_TOKENS = 500

# INVALID_ARGUMENT also covers malformed messages; only these name the token.
_INVALID_TOKEN_MARKERS = ("registration token", "message.token")


def is_invalid_token_error(error: Exception | None) -> bool:
    """Whether a per-token error means the token will never work again."""
    if isinstance(error, messaging.UnregisteredError):
        return True
    if not isinstance(error, firebase_exceptions.InvalidArgumentError):
        return False

    details = str(error)
    if error.http_response is not None:
        details = f"{details} {getattr(error.http_response, 'text', '')}"
    details = details.lower()
    return any(marker in details for marker in _INVALID_TOKEN_MARKERS)


class FirebasePushProvider(BasePushProvider):
    """Mobile push through FCM.

    Args:
        settings: Push settings holding the service account.
        app: Pre-initialized ``firebase_admin.App``. When omitted a named app
            is created lazily from the settings on first send.
    """

    APP_NAME = "notification-service"

    def __init__(
        self,
        settings: PushSettings,
        app: firebase_admin.App | None = None,
    ) -> None:
        self._app = app
        super().__init__(settings)

    @property
    def provider_name(self) -> str:
        return Backend.FIREBASE.value

    @property
    def is_configured(self) -> bool:
        return self._app is not None or self._settings.firebase_configured

    def _get_app(self) -> firebase_admin.App:
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(self.APP_NAME)
            except ValueError:
                cred = credentials.Certificate(self._settings.firebase_credentials())
                options = {}
                if self._settings.firebase_project_id:
                    options["projectId"] = self._settings.firebase_project_id
                self._app = firebase_admin.initialize_app(cred, options, name=self.APP_NAME)
                logger.info(
                    "Firebase app initialized",
                    extra={"project_id": self._settings.firebase_project_id},
                )
        return self._app

    def build_message(
        self, tokens: Sequence[str], payload: PushPayload
    ) -> messaging.MulticastMessage:
        """Build the multicast message with Android and APNs overrides."""
        ttl = payload.ttl if payload.ttl is not None else self._settings.default_ttl
        return messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(
                title=payload.title,
                body=payload.body,
                image=payload.image,
            ),
            data=dict(payload.data),
            android=messaging.AndroidConfig(
                priority="high" if payload.urgency == "high" else "normal",
                ttl=ttl,
                collapse_key=payload.topic,
                notification=messaging.AndroidNotification(
                    icon=payload.icon,
                    color=payload.color,
                    sound=payload.sound,
                    channel_id=payload.channel_id,
                    tag=payload.tag,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        badge=payload.badge_count,
                        sound=payload.sound,
                        category=payload.category,
                    ),
                ),
            ),
        )

    async def _send_chunk(
        self, tokens: list[str], payload: PushPayload, app: firebase_admin.App
    ) -> messaging.BatchResponse:
        message = self.build_message(tokens, payload)
        return await asyncio.to_thread(messaging.send_each_for_multicast, message, app=app)

    async def _do_send(self, targets: Sequence[str], payload: PushPayload) -> PushDeliveryResult:
        tokens = list(targets)
        app = self._get_app()
        chunks = [
            tokens[start : start + MAX_MULTICAST_TOKENS]
            for start in range(0, len(tokens), MAX_MULTICAST_TOKENS)
        ]

        batches = await asyncio.gather(*(self._send_chunk(chunk, payload, app) for chunk in chunks))

        success_count = 0
        failure_count = 0
        invalid_tokens: list[str] = []
        first_error: Exception | None = None
        for chunk, response in zip(chunks, batches, strict=True):
            success_count += response.success_count
            failure_count += response.failure_count
            for token, send_response in zip(chunk, response.responses, strict=False):
                if send_response.success:
                    continue
                if first_error is None:
                    first_error = send_response.exception
                if is_invalid_token_error(send_response.exception):
                    invalid_tokens.append(token)

        if success_count > 0:
            return PushDeliveryResult(
                success=True,
                provider=self.provider_name,
                success_count=success_count,
                failure_count=failure_count,
                invalid_targets=invalid_tokens,
            )

        return PushDeliveryResult(
            success=False,
            provider=self.provider_name,
            success_count=0,
            failure_count=failure_count,
            invalid_targets=invalid_tokens,
            error=str(first_error) if first_error else "No token accepted the message",
            error_code="ALL_TOKENS_FAILED",
        )

    async def _do_health_check(self) -> bool:
        """Validate a dry-run message against FCM."""
        message = messaging.Message(topic="healthcheck", data={"probe": "1"})
        await asyncio.to_thread(messaging.send, message, dry_run=True, app=self._get_app())
        return True


__all__ = ["MAX_MULTICAST_TOKENS", "FirebasePushProvider", "is_invalid_token_error"]
