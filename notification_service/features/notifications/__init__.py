"""Notification feature: the façade collaborators call to notify users."""

from __future__ import annotations

from .events import (
    DeliveryEvent,
    DeliveryEventBus,
    JobEnqueued,
    JobRetrying,
    JobSucceeded,
    JobTerminalFailure,
)
from .schemas import (
    BulkSendResult,
    NotificationChannel,
    NotificationRequest,
    NotificationResult,
    PushRequest,
    ServicesStatus,
)
from .service import (
    NotificationService,
    create_notification_service,
    get_notification_service,
)

__all__ = [
    "BulkSendResult",
    "DeliveryEvent",
    "DeliveryEventBus",
    "JobEnqueued",
    "JobRetrying",
    "JobSucceeded",
    "JobTerminalFailure",
    "NotificationChannel",
    "NotificationRequest",
    "NotificationResult",
    "NotificationService",
    "PushRequest",
    "ServicesStatus",
    "create_notification_service",
    "get_notification_service",
]
