"""Email delivery settings for the failover backends.

Environment variables use EMAIL_ prefix.
Example: EMAIL_STRATEGY=primary-first, EMAIL_SMTP_HOST=smtp.example.com
"""

from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

EmailStrategy = Literal["primary-first", "secondary-first"]


class EmailSettings(BaseSettings):
    """Email backend configuration.

    Two interchangeable backends are supported:
    - sendgrid: HTTP API service (primary)
    - smtp: SMTP relay (secondary)

    The strategy decides which one is tried first. A backend whose
    credentials are incomplete is reported as unavailable and never tried.

    Environment variables use EMAIL_ prefix.
    Example: EMAIL_SENDGRID_API_KEY=SG.xxx, EMAIL_SMTP_PORT=587
    """

    # Failover strategy
    strategy: EmailStrategy = Field(
        default="primary-first",
        description="primary-first tries the API service first, secondary-first tries SMTP first",
    )

    # Sender Configuration
    from_email: EmailStr = Field(
        default="noreply@example.com",
        description="Default sender email address",
    )
    from_name: str = Field(
        default="Notifications",
        max_length=100,
        description="Default sender display name",
    )

    # Delivery Settings
    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Per-call timeout in seconds for any email backend",
    )

    # SendGrid Configuration
    sendgrid_enabled: bool = Field(
        default=False,
        description="Enable the SendGrid API backend",
    )
    sendgrid_api_key: SecretStr | None = Field(
        default=None,
        description="SendGrid API key",
    )
    sendgrid_api_url: str = Field(
        default="https://api.sendgrid.com/v3",
        description="SendGrid API base URL",
    )
    sendgrid_rate_limit: int = Field(
        default=100,
        ge=1,
        le=100_000,
        description="Maximum SendGrid requests per rate-limit window",
    )

    # SMTP Configuration
    smtp_enabled: bool = Field(
        default=False,
        description="Enable the SMTP relay backend",
    )
    smtp_host: str | None = Field(
        default=None,
        max_length=255,
        description="SMTP server hostname",
    )
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (587 for TLS, 465 for SSL, 25 for plain)",
    )
    smtp_username: str | None = Field(
        default=None,
        max_length=255,
        description="SMTP authentication username",
    )
    smtp_password: SecretStr | None = Field(
        default=None,
        description="SMTP authentication password",
    )
    smtp_use_tls: bool = Field(
        default=True,
        description="Use STARTTLS (port 587). Set False for SSL (port 465) or plain (port 25)",
    )
    smtp_use_ssl: bool = Field(
        default=False,
        description="Use implicit SSL/TLS (port 465). Mutually exclusive with smtp_use_tls",
    )
    validate_certs: bool = Field(
        default=True,
        description="Validate SSL/TLS certificates. Set False for self-signed certs (not recommended)",
    )
    smtp_rate_limit: int = Field(
        default=60,
        ge=1,
        le=100_000,
        description="Maximum SMTP sends per rate-limit window",
    )

    @model_validator(mode="after")
    def validate_tls_ssl_exclusive(self) -> EmailSettings:
        """Ensure TLS and SSL are mutually exclusive."""
        if self.smtp_use_tls and self.smtp_use_ssl:
            msg = "smtp_use_tls and smtp_use_ssl are mutually exclusive"
            raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def sendgrid_configured(self) -> bool:
        """Check if the SendGrid backend has everything it needs."""
        return self.sendgrid_enabled and self.sendgrid_api_key is not None

    @property
    def smtp_configured(self) -> bool:
        """Check if the SMTP backend has host and credentials."""
        return bool(
            self.smtp_enabled
            and self.smtp_host
            and self.smtp_username
            and self.smtp_password is not None
        )

    def get_smtp_url(self) -> str:
        """Get SMTP URL for debugging (without password)."""
        scheme = "smtps" if self.smtp_use_ssl else "smtp"
        auth = f"{self.smtp_username}@" if self.smtp_username else ""
        return f"{scheme}://{auth}{self.smtp_host}:{self.smtp_port}"
