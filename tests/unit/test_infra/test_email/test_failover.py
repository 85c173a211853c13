"""Tests for ordered email failover."""

from __future__ import annotations

import pytest

from notification_service.core.exceptions import ConfigurationException
from notification_service.infra.email.failover import EmailFailoverSender
from notification_service.infra.email.schemas import EmailPayload
from notification_service.infra.ratelimit.limiter import RateLimiter


@pytest.mark.unit
class TestEmailFailoverSender:
    """Backend ordering, skipping and rate-limit accounting."""

    @pytest.mark.asyncio
    async def test_primary_success_stops_there(self, rate_limiter, stub_email_provider, email_payload):
        sendgrid = stub_email_provider("sendgrid")
        smtp = stub_email_provider("smtp")
        sender = EmailFailoverSender([sendgrid, smtp], rate_limiter)

        assert await sender.send(email_payload) is True
        assert len(sendgrid.calls) == 1
        assert smtp.calls == []
        assert rate_limiter.window("sendgrid").request_count == 1
        assert rate_limiter.window("smtp").request_count == 0

    @pytest.mark.asyncio
    async def test_primary_fails_secondary_succeeds(
        self, rate_limiter, stub_email_provider, email_payload
    ):
        sendgrid = stub_email_provider("sendgrid", outcomes=[False])
        smtp = stub_email_provider("smtp")
        sender = EmailFailoverSender([sendgrid, smtp], rate_limiter)

        assert await sender.send(email_payload) is True
        assert len(sendgrid.calls) == 1
        assert len(smtp.calls) == 1
        assert rate_limiter.window("sendgrid").request_count == 1
        assert rate_limiter.window("smtp").request_count == 1

    @pytest.mark.asyncio
    async def test_raising_backend_falls_through(self, rate_limiter, stub_email_provider, email_payload):
        sendgrid = stub_email_provider("sendgrid", outcomes=[RuntimeError("boom")])
        smtp = stub_email_provider("smtp")
        sender = EmailFailoverSender([sendgrid, smtp], rate_limiter)

        assert await sender.send(email_payload) is True
        assert len(smtp.calls) == 1

    @pytest.mark.asyncio
    async def test_all_backends_fail(self, rate_limiter, stub_email_provider, email_payload):
        sendgrid = stub_email_provider("sendgrid", outcomes=[False])
        smtp = stub_email_provider("smtp", outcomes=[False])
        sender = EmailFailoverSender([sendgrid, smtp], rate_limiter)

        assert await sender.send(email_payload) is False
        assert len(sendgrid.calls) == 1
        assert len(smtp.calls) == 1

    @pytest.mark.asyncio
    async def test_secondary_first_reverses_order(
        self, rate_limiter, stub_email_provider, email_payload
    ):
        sendgrid = stub_email_provider("sendgrid")
        smtp = stub_email_provider("smtp")
        sender = EmailFailoverSender([sendgrid, smtp], rate_limiter, "secondary-first")

        assert sender.primary_backend() == "smtp"
        assert await sender.send(email_payload) is True
        assert len(smtp.calls) == 1
        assert sendgrid.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", ["primary-first", "secondary-first"])
    async def test_unconfigured_backend_never_selected(
        self, strategy, rate_limiter, stub_email_provider, email_payload
    ):
        sendgrid = stub_email_provider("sendgrid", configured=False)
        smtp = stub_email_provider("smtp", outcomes=[False])
        sender = EmailFailoverSender([sendgrid, smtp], rate_limiter, strategy)

        assert await sender.send(email_payload) is False
        assert sendgrid.calls == []
        assert len(smtp.calls) == 1
        assert sender.enabled_backends == ["smtp"]
        assert sender.is_enabled("sendgrid") is False
        assert [p.provider_name for p in sender.providers] == (
            ["sendgrid", "smtp"] if strategy == "primary-first" else ["smtp", "sendgrid"]
        )

    @pytest.mark.asyncio
    async def test_invalid_recipient_calls_nothing(self, rate_limiter, stub_email_provider):
        sendgrid = stub_email_provider("sendgrid")
        smtp = stub_email_provider("smtp")
        sender = EmailFailoverSender([sendgrid, smtp], rate_limiter)
        payload = EmailPayload(to="not-an-address", subject="s", html="<p>x</p>")

        assert await sender.send(payload) is False
        assert sendgrid.calls == []
        assert smtp.calls == []
        assert rate_limiter.window("sendgrid").request_count == 0

    @pytest.mark.asyncio
    async def test_rate_limited_backend_is_skipped(self, clock, stub_email_provider, email_payload):
        limiter = RateLimiter({"sendgrid": 1, "smtp": 10}, clock=clock)
        limiter.record("sendgrid")
        sendgrid = stub_email_provider("sendgrid")
        smtp = stub_email_provider("smtp")
        sender = EmailFailoverSender([sendgrid, smtp], limiter)

        assert await sender.send(email_payload) is True
        assert sendgrid.calls == []
        assert len(smtp.calls) == 1
        assert limiter.window("sendgrid").request_count == 1

    @pytest.mark.asyncio
    async def test_no_backends_configured(self, rate_limiter, stub_email_provider, email_payload):
        sender = EmailFailoverSender(
            [stub_email_provider("sendgrid", configured=False)],
            rate_limiter,
        )

        assert sender.primary_backend() is None
        assert await sender.send(email_payload) is False

    def test_provider_without_window_is_rejected(self, clock, stub_email_provider):
        limiter = RateLimiter({"smtp": 10}, clock=clock)

        with pytest.raises(ConfigurationException, match="sendgrid"):
            EmailFailoverSender([stub_email_provider("sendgrid")], limiter)
