"""Tests for core exceptions."""

from notification_service.core import exceptions as exc


def test_notification_exception_defaults() -> None:
    error = exc.NotificationException(detail="bad")
    assert error.type == "notification-error"
    assert error.title == "Notification Error"
    assert error.extra == {}
    assert str(error) == "bad"


def test_validation_exception_fields() -> None:
    error = exc.ValidationException(detail="Email address is invalid", extra={"field": "to"})
    assert error.type == "validation-error"
    assert error.to_dict() == {
        "type": "validation-error",
        "title": "Validation Error",
        "detail": "Email address is invalid",
        "field": "to",
    }


def test_transport_exception_merges_extra() -> None:
    error = exc.TransportException(
        detail="SMTP connection failed",
        provider="smtp",
        error_code="CONNECTION_ERROR",
        extra={"host": "smtp.example.com"},
    )
    assert error.extra == {
        "provider": "smtp",
        "error_code": "CONNECTION_ERROR",
        "host": "smtp.example.com",
    }


def test_transport_exception_default_code() -> None:
    assert exc.TransportException(detail="x", provider="sendgrid").error_code == "TRANSPORT_ERROR"


def test_terminal_failure_builds_detail() -> None:
    error = exc.TerminalFailureException(job_id="email_1_abc", attempts=3)
    assert error.detail == "Email job email_1_abc failed after 3 attempts"
    assert error.extra == {"job_id": "email_1_abc", "attempts": 3}
    assert isinstance(error, exc.NotificationException)


def test_rate_limit_exception_carries_retry_after() -> None:
    error = exc.RateLimitException(backend="sendgrid", retry_after=12.5)
    assert error.detail == "Rate limit exceeded for sendgrid"
    assert error.extra == {"backend": "sendgrid", "retry_after": 12.5}
    assert error.title == "Too Many Requests"
