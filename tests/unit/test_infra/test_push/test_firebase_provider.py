"""Tests for the Firebase Cloud Messaging provider."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from notification_service.core.settings import PushSettings
from notification_service.infra.push.providers.firebase import (
    MAX_MULTICAST_TOKENS,
    FirebasePushProvider,
    is_invalid_token_error,
)


def _response(*outcomes):
    """Build a BatchResponse look-alike from per-token exceptions (None = success)."""
    responses = [
        SimpleNamespace(success=exc is None, exception=exc) for exc in outcomes
    ]
    success_count = sum(1 for r in responses if r.success)
    return SimpleNamespace(
        responses=responses,
        success_count=success_count,
        failure_count=len(responses) - success_count,
    )


@pytest.fixture
def multicast(monkeypatch):
    sent = []

    def install(response):
        def fake_send(message, app=None):
            sent.append((message, app))
            return response

        monkeypatch.setattr(messaging, "send_each_for_multicast", fake_send)
        return sent

    return install


@pytest.mark.unit
class TestFirebasePushProvider:
    @pytest.mark.asyncio
    async def test_partial_success_reports_invalid_tokens(
        self, push_settings, push_payload, multicast
    ):
        app = MagicMock()
        sent = multicast(
            _response(
                None,
                messaging.UnregisteredError("token unregistered"),
                firebase_exceptions.UnavailableError("try later"),
            )
        )
        provider = FirebasePushProvider(push_settings, app=app)

        result = await provider.send(["good", "dead", "flaky"], push_payload)

        assert result.success is True
        assert result.success_count == 1
        assert result.failure_count == 2
        assert result.invalid_targets == ["dead"]
        message, used_app = sent[0]
        assert used_app is app
        assert message.tokens == ["good", "dead", "flaky"]

    @pytest.mark.asyncio
    async def test_all_tokens_failed(self, push_settings, push_payload, multicast):
        multicast(
            _response(
                firebase_exceptions.InvalidArgumentError(
                    "The registration token is not a valid FCM registration token"
                )
            )
        )
        provider = FirebasePushProvider(push_settings, app=MagicMock())

        result = await provider.send(["bad"], push_payload)

        assert result.success is False
        assert result.error_code == "ALL_TOKENS_FAILED"
        assert result.invalid_targets == ["bad"]

    @pytest.mark.asyncio
    async def test_sdk_error_becomes_failure(self, push_settings, push_payload, monkeypatch):
        def explode(message, app=None):
            raise firebase_exceptions.UnavailableError("fcm down")

        monkeypatch.setattr(messaging, "send_each_for_multicast", explode)
        provider = FirebasePushProvider(push_settings, app=MagicMock())

        result = await provider.send(["token"], push_payload)

        assert result.success is False
        assert result.error_code == "UNEXPECTED_ERROR"

    def test_build_message_platform_overrides(self, push_settings, push_payload):
        provider = FirebasePushProvider(push_settings, app=MagicMock())

        message = provider.build_message(["token"], push_payload)

        assert message.notification.title == "New offer received"
        assert message.data == {"property_id": "prop_123"}
        assert message.android.priority == "high"
        assert message.android.ttl == 86400
        assert message.android.notification.channel_id == "default"
        assert message.android.notification.color == "#4A90E2"
        assert message.apns.payload.aps.badge == 1
        assert message.apns.payload.aps.category == "DEFAULT"

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, push_payload):
        provider = FirebasePushProvider(PushSettings(_env_file=None, firebase_enabled=False))

        result = await provider.send(["token"], push_payload)

        assert provider.is_configured is False
        assert result.success is False
        assert result.error_code == "NOT_CONFIGURED"
        assert await provider.health_check() is False


@pytest.mark.unit
class TestInvalidTokenClassification:
    @pytest.mark.asyncio
    async def test_payload_error_marks_no_tokens(self, push_settings, push_payload, multicast):
        payload_error = firebase_exceptions.InvalidArgumentError(
            'Invalid JSON payload received. Unknown name "colour" at message.android.notification'
        )
        multicast(_response(payload_error, payload_error))
        provider = FirebasePushProvider(push_settings, app=MagicMock())

        result = await provider.send(["good-token-1", "good-token-2"], push_payload)

        assert result.success is False
        assert result.failure_count == 2
        assert result.invalid_targets == []

    def test_token_errors_are_classified(self):
        assert is_invalid_token_error(messaging.UnregisteredError("gone")) is True
        assert (
            is_invalid_token_error(
                firebase_exceptions.InvalidArgumentError(
                    "The registration token is not a valid FCM registration token"
                )
            )
            is True
        )
        assert is_invalid_token_error(firebase_exceptions.UnavailableError("later")) is False
        assert is_invalid_token_error(None) is False

    def test_token_named_in_http_response(self):
        response = SimpleNamespace(
            text='{"error": {"details": [{"fieldViolations": [{"field": "message.token"}]}]}}'
        )
        error = firebase_exceptions.InvalidArgumentError(
            "Request contains an invalid argument.", http_response=response
        )

        assert is_invalid_token_error(error) is True


@pytest.mark.unit
class TestMulticastChunking:
    @pytest.mark.asyncio
    async def test_tokens_split_at_multicast_limit(self, push_settings, push_payload, monkeypatch):
        sent_sizes = []

        def fake_send(message, app=None):
            sent_sizes.append(len(message.tokens))
            outcomes = [None] * len(message.tokens)
            if "dead-token" in message.tokens:
                outcomes[message.tokens.index("dead-token")] = messaging.UnregisteredError("gone")
            return _response(*outcomes)

        monkeypatch.setattr(messaging, "send_each_for_multicast", fake_send)
        provider = FirebasePushProvider(push_settings, app=MagicMock())
        tokens = [f"token-{i}" for i in range(MAX_MULTICAST_TOKENS)] + ["dead-token"]

        result = await provider.send(tokens, push_payload)

        assert sorted(sent_sizes) == [1, MAX_MULTICAST_TOKENS]
        assert result.success is True
        assert result.success_count == MAX_MULTICAST_TOKENS
        assert result.failure_count == 1
        assert result.invalid_targets == ["dead-token"]
