"""Unit tests for modular Pydantic Settings v2."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from notification_service.core.settings import (
    DeliverySettings,
    EmailSettings,
    PushSettings,
    clear_settings_cache,
    get_delivery_settings,
    get_email_settings,
    get_settings,
)


@pytest.fixture(autouse=True)
def _fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.mark.unit
class TestEmailSettings:
    """Test suite for EmailSettings."""

    def test_defaults(self):
        settings = EmailSettings(_env_file=None)

        assert settings.strategy == "primary-first"
        assert settings.sendgrid_rate_limit == 100
        assert settings.smtp_rate_limit == 60
        assert settings.sendgrid_configured is False
        assert settings.smtp_configured is False

    def test_frozen(self):
        settings = EmailSettings(_env_file=None)

        with pytest.raises(ValidationError):
            settings.strategy = "secondary-first"

    def test_enabled_without_credentials_is_not_configured(self):
        settings = EmailSettings(_env_file=None, sendgrid_enabled=True, smtp_enabled=True)

        assert settings.sendgrid_configured is False
        assert settings.smtp_configured is False

    def test_tls_and_ssl_are_exclusive(self):
        with pytest.raises(ValidationError, match="mutually exclusive"):
            EmailSettings(_env_file=None, smtp_use_tls=True, smtp_use_ssl=True)

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            EmailSettings(_env_file=None, strategy="round-robin")

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("EMAIL_STRATEGY", "secondary-first")
        monkeypatch.setenv("EMAIL_SENDGRID_ENABLED", "true")
        monkeypatch.setenv("EMAIL_SENDGRID_API_KEY", "SG.env-key")

        settings = get_email_settings()

        assert settings.strategy == "secondary-first"
        assert settings.sendgrid_configured is True
        assert settings.sendgrid_api_key.get_secret_value() == "SG.env-key"

    def test_loader_caches(self):
        assert get_email_settings() is get_email_settings()


@pytest.mark.unit
class TestPushSettings:
    def test_firebase_credentials_restore_newlines(self, push_settings):
        credentials = push_settings.firebase_credentials()

        assert credentials["type"] == "service_account"
        assert credentials["project_id"] == "example-project"
        assert "\n" in credentials["private_key"]
        assert "\\n" not in credentials["private_key"]

    def test_firebase_credentials_file(self, tmp_path):
        path = tmp_path / "service-account.json"
        path.write_text('{"type": "service_account", "project_id": "from-file"}')

        settings = PushSettings(_env_file=None, firebase_enabled=True, firebase_credentials_file=path)

        assert settings.firebase_configured is True
        assert settings.firebase_credentials()["project_id"] == "from-file"

    def test_webpush_needs_full_vapid_triple(self):
        settings = PushSettings(
            _env_file=None,
            webpush_enabled=True,
            vapid_subject="https://example.com/contact",
            vapid_public_key="BPublicKey",
        )

        assert settings.webpush_configured is False


@pytest.mark.unit
class TestDeliverySettings:
    def test_defaults(self):
        settings = DeliverySettings(_env_file=None)

        assert settings.default_max_attempts == 3
        assert settings.urgent_max_attempts == 5
        assert settings.retry_backoff_seconds == 30.0
        assert settings.rate_limit_pause_seconds == 10.0
        assert settings.spacing_seconds == 1.0
        assert settings.rate_limit_window_seconds == 60.0
        assert settings.bulk_email_batch_size == 50
        assert settings.bulk_email_pause_seconds == 1.0
        assert settings.bulk_push_batch_size == 100
        assert settings.bulk_push_pause_seconds == 0.1

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DELIVERY_RETRY_BACKOFF_SECONDS", "5")

        assert get_delivery_settings().retry_backoff_seconds == 5.0

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            DeliverySettings(_env_file=None, default_max_attempts=0)


@pytest.mark.unit
def test_unified_settings_compose_domains():
    settings = get_settings()

    assert settings.delivery.default_max_attempts == 3
    assert settings.logging.service_name == "notification-service"
    assert get_settings() is settings
