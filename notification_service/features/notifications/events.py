"""Delivery lifecycle events.

The delivery queue is fire-and-forget for its callers; these events are how
collaborators observe what happened to a queued email afterwards.

Usage:
    async def on_failure(event: DeliveryEvent) -> None:
        await audit_log.record(event.model_dump())

    service.events.subscribe(JobTerminalFailure.event_type, on_failure)
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from notification_service.infra.email.queue import (
    JOB_ENQUEUED,
    JOB_RETRYING,
    JOB_SUCCEEDED,
    JOB_TERMINAL_FAILURE,
)

if TYPE_CHECKING:
    from notification_service.infra.email.schemas import QueuedEmailJob

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"


class DeliveryEvent(BaseModel):
    """Base class for queue job events.

    Subclasses set ``event_type``. The recipient is stored masked.
    """

    event_type: ClassVar[str] = "delivery.event"

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    job_id: str
    recipient: str
    priority: str
    attempts: int
    max_attempts: int

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_job(cls, job: QueuedEmailJob) -> DeliveryEvent:
        return cls(
            job_id=job.id,
            recipient=job.payload.masked_recipient,
            priority=job.priority.value,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
        )


class JobEnqueued(DeliveryEvent):
    event_type: ClassVar[str] = JOB_ENQUEUED


class JobSucceeded(DeliveryEvent):
    event_type: ClassVar[str] = JOB_SUCCEEDED


class JobRetrying(DeliveryEvent):
    event_type: ClassVar[str] = JOB_RETRYING


class JobTerminalFailure(DeliveryEvent):
    event_type: ClassVar[str] = JOB_TERMINAL_FAILURE


EVENT_TYPES: dict[str, type[DeliveryEvent]] = {
    cls.event_type: cls for cls in (JobEnqueued, JobSucceeded, JobRetrying, JobTerminalFailure)
}

EventHandler = Callable[[DeliveryEvent], Awaitable[None]]


class DeliveryEventBus:
    """In-process async publish/subscribe for delivery events.

    Handlers run sequentially in subscription order. A failing handler is
    logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for ``event_type`` (or ``"*"`` for every event).

        Returns:
            A callable that removes the subscription.
        """
        if event_type != ALL_EVENTS and event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown delivery event type: {event_type}")
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: DeliveryEvent) -> None:
        handlers = [*self._handlers.get(event.event_type, []), *self._handlers.get(ALL_EVENTS, [])]
        for handler in handlers:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Delivery event handler failed",
                    extra={"event_type": event.event_type, "job_id": event.job_id},
                )

    async def publish_job_event(self, event_type: str, job: QueuedEmailJob) -> None:
        """Adapter matching the delivery queue's ``on_event`` callback."""
        await self.publish(EVENT_TYPES[event_type].from_job(job))


__all__ = [
    "ALL_EVENTS",
    "EVENT_TYPES",
    "DeliveryEvent",
    "DeliveryEventBus",
    "EventHandler",
    "JobEnqueued",
    "JobRetrying",
    "JobSucceeded",
    "JobTerminalFailure",
]
