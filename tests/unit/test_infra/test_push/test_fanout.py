"""Tests for push fanout across mobile and browser gateways."""

from __future__ import annotations

import pytest

from notification_service.infra.push.fanout import PushFanout
from notification_service.infra.push.schemas import PushTarget, WebPushSubscription
from notification_service.infra.ratelimit.limiter import RateLimiter


@pytest.mark.unit
class TestPushFanout:
    """Transport independence, filtering and cleanup hooks."""

    @pytest.mark.asyncio
    async def test_mobile_fails_browser_succeeds(
        self, rate_limiter, stub_push_provider, push_payload, subscription
    ):
        firebase = stub_push_provider("firebase", success=False)
        webpush = stub_push_provider("webpush")
        fanout = PushFanout(firebase, webpush, rate_limiter)

        result = await fanout.send_push(
            PushTarget(tokens=["device-1"], subscriptions=[subscription]), push_payload
        )

        assert result.mobile is False
        assert result.browser is True
        assert result.delivered is True

    @pytest.mark.asyncio
    async def test_only_present_transports_are_used(
        self, rate_limiter, stub_push_provider, push_payload
    ):
        firebase = stub_push_provider("firebase")
        webpush = stub_push_provider("webpush")
        fanout = PushFanout(firebase, webpush, rate_limiter)

        result = await fanout.send_push({"tokens": ["device-1", "device-2"]}, push_payload)

        assert result.mobile is True
        assert result.browser is False
        assert firebase.calls[0][0] == ["device-1", "device-2"]
        assert webpush.calls == []
        assert rate_limiter.window("firebase").request_count == 1
        assert rate_limiter.window("webpush").request_count == 0

    @pytest.mark.asyncio
    async def test_blank_tokens_filtered(self, rate_limiter, stub_push_provider, push_payload):
        firebase = stub_push_provider("firebase")
        fanout = PushFanout(firebase, None, rate_limiter)

        assert await fanout.send_mobile_push(["", "  "], push_payload) is False
        assert firebase.calls == []

        assert await fanout.send_mobile_push(["", "device-1"], push_payload) is True
        assert firebase.calls[0][0] == ["device-1"]

    @pytest.mark.asyncio
    async def test_incomplete_subscriptions_filtered(
        self, rate_limiter, stub_push_provider, push_payload, subscription
    ):
        webpush = stub_push_provider("webpush")
        fanout = PushFanout(None, webpush, rate_limiter)

        delivered = await fanout.send_browser_push(
            [
                {"endpoint": "https://push.example.com/x", "keys": {"p256dh": "k"}},
                {"endpoint": "", "keys": {"p256dh": "k", "auth": "a"}},
                subscription.model_dump(by_alias=True),
            ],
            push_payload,
        )

        assert delivered is True
        assert webpush.calls[0][0] == [subscription]

    @pytest.mark.asyncio
    async def test_unconfigured_transport_is_not_called(
        self, rate_limiter, stub_push_provider, push_payload
    ):
        firebase = stub_push_provider("firebase", configured=False)
        fanout = PushFanout(firebase, None, rate_limiter)

        assert fanout.mobile_enabled is False
        assert fanout.browser_enabled is False
        assert await fanout.send_mobile_push(["device-1"], push_payload) is False
        assert firebase.calls == []

    @pytest.mark.asyncio
    async def test_rate_limited_transport_is_skipped(
        self, clock, stub_push_provider, push_payload
    ):
        limiter = RateLimiter({"firebase": 1, "webpush": 1}, clock=clock)
        limiter.record("firebase")
        firebase = stub_push_provider("firebase")
        fanout = PushFanout(firebase, None, limiter)

        assert await fanout.send_mobile_push(["device-1"], push_payload) is False
        assert firebase.calls == []

    @pytest.mark.asyncio
    async def test_invalid_tokens_passed_to_hook(
        self, rate_limiter, stub_push_provider, push_payload
    ):
        removed: list[list[str]] = []

        async def on_invalid_tokens(tokens):
            removed.append(tokens)

        firebase = stub_push_provider("firebase", invalid_targets=["dead-token"])
        fanout = PushFanout(firebase, None, rate_limiter, on_invalid_tokens=on_invalid_tokens)

        assert await fanout.send_mobile_push(["dead-token", "live-token"], push_payload) is True
        assert removed == [["dead-token"]]

    @pytest.mark.asyncio
    async def test_expired_subscriptions_passed_to_hook(
        self, rate_limiter, stub_push_provider, push_payload, subscription
    ):
        expired: list[WebPushSubscription] = []

        async def on_expired(sub):
            expired.append(sub)

        webpush = stub_push_provider("webpush", success=False, invalid_targets=[subscription])
        fanout = PushFanout(None, webpush, rate_limiter, on_expired_subscription=on_expired)

        assert await fanout.send_browser_push([subscription], push_payload) is False
        assert expired == [subscription]

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_change_result(
        self, rate_limiter, stub_push_provider, push_payload
    ):
        async def broken(tokens):
            raise RuntimeError("database unavailable")

        firebase = stub_push_provider("firebase", invalid_targets=["dead-token"])
        fanout = PushFanout(firebase, None, rate_limiter, on_invalid_tokens=broken)

        assert await fanout.send_mobile_push(["dead-token", "live"], push_payload) is True

    @pytest.mark.asyncio
    async def test_nothing_to_send(self, rate_limiter, stub_push_provider, push_payload):
        fanout = PushFanout(
            stub_push_provider("firebase"), stub_push_provider("webpush"), rate_limiter
        )

        result = await fanout.send_push(PushTarget(), push_payload)

        assert result.delivered is False
