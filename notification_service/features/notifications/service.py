"""Notification service façade.

Single entry point for sending email and push notifications. The service
owns every delivery component (rate limiter, failover sender, delivery
queue, push fanout, event bus) and is built once by
``create_notification_service()``.

Usage:
    from notification_service.features.notifications import get_notification_service

    service = get_notification_service()
    result = await service.send_notification(
        {
            "type": "both",
            "email": {"to": "buyer@example.com", "subject": "Offer accepted", "html": "..."},
            "push": {
                "notification": {"title": "Offer accepted", "body": "..."},
                "tokens": ["fcm-token"],
            },
            "priority": "high",
        }
    )
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from notification_service.core.exceptions import ValidationException
from notification_service.core.settings import NotificationSettings, get_settings
from notification_service.features.notifications.events import DeliveryEventBus
from notification_service.features.notifications.schemas import (
    BulkSendResult,
    EmailStatus,
    NotificationRequest,
    NotificationResult,
    PushRequest,
    PushStatus,
    QueueStatus,
    RateLimitStatus,
    ServicesStatus,
)
from notification_service.infra.email.failover import EmailFailoverSender
from notification_service.infra.email.providers import SendGridProvider, SMTPProvider
from notification_service.infra.email.queue import EmailDeliveryQueue
from notification_service.infra.email.schemas import EmailPayload, EmailPriority
from notification_service.infra.logging import setup_logging
from notification_service.infra.logging.context import log_context
from notification_service.infra.push.fanout import (
    ExpiredSubscriptionHook,
    InvalidTokensHook,
    PushFanout,
)
from notification_service.infra.push.providers import FirebasePushProvider, WebPushProvider
from notification_service.infra.push.schemas import (
    PushPayload,
    PushResult,
    PushTarget,
    WebPushSubscription,
)
from notification_service.infra.ratelimit.limiter import RateLimiter
from notification_service.infra.ratelimit.status import Backend

if TYPE_CHECKING:
    import firebase_admin

logger = logging.getLogger(__name__)

ALL_BACKENDS = tuple(b.value for b in Backend)


def _coerce(model: type[Any], value: Any) -> Any:
    """Validate a dict into ``model``, raising ValidationException on failure."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise ValidationException(
            detail=f"Invalid {model.__name__}",
            extra={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


class NotificationService:
    """Email and push delivery behind one interface.

    Args:
        sender: Email failover sender.
        queue: Delivery queue used for queued and urgent-retry emails.
        fanout: Push fanout.
        rate_limiter: Limiter shared by all backends.
        events: Bus publishing queue job events.
        settings: Settings the components were built from.
        sleep: Async sleep used between bulk batches.
    """

    def __init__(
        self,
        *,
        sender: EmailFailoverSender,
        queue: EmailDeliveryQueue,
        fanout: PushFanout,
        rate_limiter: RateLimiter,
        events: DeliveryEventBus,
        settings: NotificationSettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sender = sender
        self._queue = queue
        self._fanout = fanout
        self._rate_limiter = rate_limiter
        self._events = events
        self._settings = settings
        self._sleep = sleep

        self._log_service_status()

    @property
    def events(self) -> DeliveryEventBus:
        return self._events

    @property
    def queue(self) -> EmailDeliveryQueue:
        return self._queue

    def _log_service_status(self) -> None:
        email_backends = self._sender.enabled_backends
        push_backends = [
            name
            for name, enabled in (
                (Backend.FIREBASE.value, self._fanout.mobile_enabled),
                (Backend.WEBPUSH.value, self._fanout.browser_enabled),
            )
            if enabled
        ]
        logger.info(
            "Notification service initialized",
            extra={
                "email_backends": email_backends,
                "email_strategy": self._sender.strategy,
                "primary_email_backend": self._sender.primary_backend(),
                "push_backends": push_backends,
                "vapid_configured": self._fanout.browser_enabled,
            },
        )
        if not email_backends:
            logger.warning("No email backend is enabled; emails will not be delivered")

    # ──────────────────────────────────────────────────────────────
    # Notifications
    # ──────────────────────────────────────────────────────────────

    async def send_notification(
        self, request: NotificationRequest | Mapping[str, Any]
    ) -> NotificationResult:
        """Send a notification on every channel it requests.

        Email and push run concurrently. ``high`` and ``urgent`` emails use
        the urgent path (direct attempt, queued retry on failure); other
        priorities are sent directly and never queued.

        Raises:
            ValidationException: If the request is malformed. No backend is
                called in that case.
        """
        request = _coerce(NotificationRequest, request)

        async def _email() -> bool:
            if request.email is None or not request.type.includes_email:
                return False
            if request.priority.is_elevated:
                return await self.send_urgent_email(request.email)
            return await self.send_email(request.email)

        async def _push() -> bool:
            if request.push is None or not request.type.includes_push:
                return False
            result = await self.send_push(request.push.targets, request.push.notification)
            return result.delivered

        with log_context(notification_id=uuid.uuid4().hex):
            email, push = await asyncio.gather(_email(), _push())
            logger.info(
                "Notification processed",
                extra={
                    "channel": request.type.value,
                    "priority": request.priority.value,
                    "email": email,
                    "push": push,
                },
            )
        return NotificationResult(email=email, push=push)

    # ──────────────────────────────────────────────────────────────
    # Email
    # ──────────────────────────────────────────────────────────────

    async def send_email(self, payload: EmailPayload | Mapping[str, Any]) -> bool:
        """Send directly through the failover chain. Never queued."""
        return await self._sender.send(_coerce(EmailPayload, payload))

    async def send_urgent_email(self, payload: EmailPayload | Mapping[str, Any]) -> bool:
        """Send directly; on failure queue one retry job at the front.

        Returns:
            True if delivered now. False means not yet confirmed: the email
            was queued, or the recipient address was invalid.
        """
        payload = _coerce(EmailPayload, payload)
        if await self._sender.send(payload):
            return True
        if not payload.has_valid_recipient:
            return False

        job_id = self._queue.enqueue(
            payload,
            priority=EmailPriority.URGENT,
            max_attempts=self._settings.delivery.urgent_max_attempts,
        )
        logger.warning(
            "Urgent email failed, queued for retry",
            extra={"job_id": job_id, "to": payload.masked_recipient},
        )
        return False

    async def queue_email(
        self,
        payload: EmailPayload | Mapping[str, Any],
        priority: EmailPriority | str = EmailPriority.NORMAL,
        max_attempts: int | None = None,
    ) -> str:
        """Queue an email for background delivery.

        Returns:
            The job id.

        Raises:
            ValidationException: If the payload or recipient is invalid.
        """
        payload = _coerce(EmailPayload, payload)
        if not payload.has_valid_recipient:
            raise ValidationException(
                detail="Email recipient address is invalid",
                extra={"field": "to", "to": payload.masked_recipient},
            )
        try:
            priority = EmailPriority(priority)
        except ValueError as e:
            raise ValidationException(
                detail=f"Unknown email priority: {priority}",
                extra={"field": "priority"},
            ) from e
        if max_attempts is not None and max_attempts < 1:
            raise ValidationException(
                detail=f"max_attempts must be at least 1, got {max_attempts}",
                extra={"field": "max_attempts"},
            )
        return self._queue.enqueue(payload, priority=priority, max_attempts=max_attempts)

    # ──────────────────────────────────────────────────────────────
    # Push
    # ──────────────────────────────────────────────────────────────

    async def send_mobile_push(
        self, tokens: Iterable[str], notification: PushPayload | Mapping[str, Any]
    ) -> bool:
        return await self._fanout.send_mobile_push(tokens, _coerce(PushPayload, notification))

    async def send_browser_push(
        self,
        subscriptions: Iterable[WebPushSubscription | Mapping[str, Any]],
        notification: PushPayload | Mapping[str, Any],
    ) -> bool:
        return await self._fanout.send_browser_push(
            subscriptions, _coerce(PushPayload, notification)
        )

    async def send_push(
        self,
        targets: PushTarget | Mapping[str, Any],
        notification: PushPayload | Mapping[str, Any],
    ) -> PushResult:
        return await self._fanout.send_push(
            _coerce(PushTarget, targets), _coerce(PushPayload, notification)
        )

    # ──────────────────────────────────────────────────────────────
    # Bulk
    # ──────────────────────────────────────────────────────────────

    async def send_bulk_emails(
        self,
        payloads: Iterable[EmailPayload | Mapping[str, Any]],
        batch_size: int | None = None,
    ) -> BulkSendResult:
        """Send many emails directly, one batch at a time.

        Emails within a batch go out concurrently; batches are separated by
        ``delivery.bulk_email_pause_seconds``. Nothing is queued.

        Raises:
            ValidationException: If any payload is malformed or ``batch_size``
                is below 1. No backend is called in that case.
        """
        emails = [_coerce(EmailPayload, payload) for payload in payloads]
        if batch_size is None:
            batch_size = self._settings.delivery.bulk_email_batch_size
        return await self._send_in_batches(
            "email",
            emails,
            self._sender.send,
            batch_size,
            self._settings.delivery.bulk_email_pause_seconds,
        )

    async def send_bulk_push(
        self,
        requests: Iterable[PushRequest | Mapping[str, Any]],
        batch_size: int | None = None,
    ) -> BulkSendResult:
        """Fan out many push notifications, one batch at a time.

        A request counts as a success when any of its transports delivered.
        """
        pushes = [_coerce(PushRequest, request) for request in requests]
        if batch_size is None:
            batch_size = self._settings.delivery.bulk_push_batch_size

        async def _send(request: PushRequest) -> bool:
            result = await self._fanout.send_push(request.targets, request.notification)
            return result.delivered

        return await self._send_in_batches(
            "push",
            pushes,
            _send,
            batch_size,
            self._settings.delivery.bulk_push_pause_seconds,
        )

    async def _send_in_batches(
        self,
        channel: str,
        items: Sequence[Any],
        send: Callable[[Any], Awaitable[bool]],
        batch_size: int,
        pause_seconds: float,
    ) -> BulkSendResult:
        if batch_size < 1:
            raise ValidationException(
                detail=f"batch_size must be at least 1, got {batch_size}",
                extra={"field": "batch_size"},
            )

        success = 0
        failed = 0
        for start in range(0, len(items), batch_size):
            batch = items[start : start + batch_size]
            outcomes = await asyncio.gather(*(send(item) for item in batch), return_exceptions=True)
            for outcome in outcomes:
                if outcome is True:
                    success += 1
                    continue
                failed += 1
                if isinstance(outcome, Exception):
                    logger.error(
                        f"Bulk {channel} item raised",
                        exc_info=outcome,
                        extra={"channel": channel},
                    )

            if start + batch_size < len(items):
                await self._sleep(pause_seconds)

        logger.info(
            f"Bulk {channel} send finished",
            extra={"channel": channel, "total": len(items), "success": success, "failed": failed},
        )
        return BulkSendResult(success=success, failed=failed)

    # ──────────────────────────────────────────────────────────────
    # Status
    # ──────────────────────────────────────────────────────────────

    def get_services_status(self) -> ServicesStatus:
        """Report enabled backends, queue state and rate-limit windows."""
        browser_key = None
        if self._fanout.browser_enabled:
            browser_key = self._settings.push.vapid_public_key

        return ServicesStatus(
            email=EmailStatus(
                sendgrid=self._sender.is_enabled(Backend.SENDGRID.value),
                smtp=self._sender.is_enabled(Backend.SMTP.value),
                strategy=self._sender.strategy,
                primary=self._sender.primary_backend(),
            ),
            push=PushStatus(
                firebase=self._fanout.mobile_enabled,
                webpush=self._fanout.browser_enabled,
                vapid_public_key=browser_key,
            ),
            queue=QueueStatus(length=len(self._queue), running=self._queue.is_running),
            rate_limits={
                backend: RateLimitStatus(**window.to_dict())
                for backend, window in self._rate_limiter.snapshot().items()
            },
        )

    async def test_configuration(self) -> dict[str, bool]:
        """Probe every backend concurrently.

        Unconfigured backends report False without being probed; each probe
        is bounded by ``delivery.probe_timeout``.
        """
        providers = [*self._sender.providers, *self._fanout.providers]
        timeout = self._settings.delivery.probe_timeout

        async def _probe(provider: Any) -> bool:
            if not provider.is_configured:
                return False
            try:
                return await asyncio.wait_for(provider.health_check(), timeout=timeout)
            except Exception as e:
                logger.warning(
                    "Backend probe failed",
                    extra={"provider": provider.provider_name, "error": str(e)},
                )
                return False

        outcomes = await asyncio.gather(*(_probe(p) for p in providers))
        results = dict.fromkeys(ALL_BACKENDS, False)
        for provider, ok in zip(providers, outcomes, strict=True):
            results[provider.provider_name] = ok

        logger.info("Backend configuration probed", extra={"results": results})
        return results

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def aclose(self) -> None:
        """Stop the delivery queue worker."""
        await self._queue.shutdown()

    async def __aenter__(self) -> NotificationService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def create_notification_service(
    settings: NotificationSettings | None = None,
    *,
    on_invalid_tokens: InvalidTokensHook | None = None,
    on_expired_subscription: ExpiredSubscriptionHook | None = None,
    http_client: httpx.AsyncClient | None = None,
    firebase_app: firebase_admin.App | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> NotificationService:
    """Build a NotificationService and all of its components from settings.

    Args:
        settings: Settings to build from; loaded from the environment when omitted.
        on_invalid_tokens: Cleanup hook for dead device tokens.
        on_expired_subscription: Cleanup hook for expired browser subscriptions.
        http_client: Shared httpx client for the SendGrid backend.
        firebase_app: Pre-initialized Firebase app.
        clock: Monotonic clock shared by the limiter and the queue.
        sleep: Async sleep used by the queue and between bulk batches.
    """
    if settings is None:
        settings = get_settings()

    email_settings = settings.email
    push_settings = settings.push

    rate_limiter = RateLimiter(
        {
            Backend.SENDGRID.value: email_settings.sendgrid_rate_limit,
            Backend.SMTP.value: email_settings.smtp_rate_limit,
            Backend.FIREBASE.value: push_settings.firebase_rate_limit,
            Backend.WEBPUSH.value: push_settings.webpush_rate_limit,
        },
        window_seconds=settings.delivery.rate_limit_window_seconds,
        clock=clock,
    )

    sender = EmailFailoverSender(
        [SendGridProvider(email_settings, client=http_client), SMTPProvider(email_settings)],
        rate_limiter,
        strategy=email_settings.strategy,
    )

    events = DeliveryEventBus()
    queue = EmailDeliveryQueue(
        sender,
        rate_limiter,
        settings=settings.delivery,
        on_event=events.publish_job_event,
        clock=clock,
        sleep=sleep,
    )

    fanout = PushFanout(
        FirebasePushProvider(push_settings, app=firebase_app),
        WebPushProvider(push_settings),
        rate_limiter,
        on_invalid_tokens=on_invalid_tokens,
        on_expired_subscription=on_expired_subscription,
    )

    return NotificationService(
        sender=sender,
        queue=queue,
        fanout=fanout,
        rate_limiter=rate_limiter,
        events=events,
        settings=settings,
        sleep=sleep,
    )


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    """Get the process-wide NotificationService built from environment settings.

    Logging is configured from the same settings on first use.
    """
    settings = get_settings()
    setup_logging(settings.logging)
    return create_notification_service(settings)


__all__ = [
    "NotificationService",
    "create_notification_service",
    "get_notification_service",
]
