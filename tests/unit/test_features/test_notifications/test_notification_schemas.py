"""Tests for notification request models."""

from __future__ import annotations

import pydantic
import pytest

from notification_service.features.notifications.schemas import (
    NotificationChannel,
    NotificationRequest,
    PushRequest,
)
from notification_service.infra.email.schemas import EmailPriority
from notification_service.infra.push.schemas import PushPayload, PushTarget, WebPushSubscription


@pytest.mark.unit
class TestNotificationRequest:
    def test_defaults_to_normal_priority(self, email_payload):
        request = NotificationRequest(type="email", email=email_payload)

        assert request.priority is EmailPriority.NORMAL
        assert request.type is NotificationChannel.EMAIL

    def test_both_requires_both_payloads(self, email_payload):
        with pytest.raises(pydantic.ValidationError, match="require a push payload"):
            NotificationRequest(type="both", email=email_payload)

    def test_push_request_targets(self, push_payload, subscription):
        push = PushRequest(notification=push_payload, tokens=["t1"], subscriptions=[subscription])

        assert push.targets == PushTarget(tokens=["t1"], subscriptions=[subscription])

    @pytest.mark.parametrize(
        ("channel", "email", "push"),
        [("email", True, False), ("push", False, True), ("both", True, True)],
    )
    def test_channel_membership(self, channel, email, push):
        assert NotificationChannel(channel).includes_email is email
        assert NotificationChannel(channel).includes_push is push


@pytest.mark.unit
class TestPushSchemas:
    def test_web_payload_uses_browser_keys(self):
        payload = PushPayload(
            title="Viewing tomorrow",
            body="10:00 at 12 Oak St.",
            require_interaction=True,
            actions=[{"action": "open", "title": "Open"}],
        )

        body = payload.web_payload()

        assert body["requireInteraction"] is True
        assert body["actions"] == [{"action": "open", "title": "Open"}]
        assert "channel_id" not in body

    def test_subscription_accepts_browser_json(self):
        subscription = WebPushSubscription.model_validate(
            {
                "endpoint": "https://push.example.com/abc",
                "expirationTime": None,
                "keys": {"p256dh": "k", "auth": "a"},
            }
        )

        assert subscription.is_complete is True
        assert subscription.subscription_info() == {
            "endpoint": "https://push.example.com/abc",
            "keys": {"p256dh": "k", "auth": "a"},
        }

    def test_blank_tokens_do_not_count_as_mobile_target(self):
        assert PushTarget(tokens=["", "  "]).has_mobile is False
        assert PushTarget(tokens=["t1"]).has_mobile is True
