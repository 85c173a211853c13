"""Push delivery settings for the mobile and browser gateways.

Environment variables use PUSH_ prefix.
Example: PUSH_FIREBASE_ENABLED=true, PUSH_VAPID_SUBJECT=mailto:ops@example.com
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PushSettings(BaseSettings):
    """Push gateway configuration.

    Supports:
    - firebase: Firebase Cloud Messaging via a service account
    - webpush: Browser Web Push signed with a VAPID key pair

    The service account can come from a JSON file or from the three
    discrete fields (project id, client email, private key).
    """

    # Firebase Cloud Messaging
    firebase_enabled: bool = Field(
        default=False,
        description="Enable the Firebase mobile push backend",
    )
    firebase_project_id: str | None = Field(
        default=None,
        description="Firebase project identifier",
    )
    firebase_client_email: str | None = Field(
        default=None,
        description="Service account client email",
    )
    firebase_private_key: SecretStr | None = Field(
        default=None,
        description="Service account private key (escaped newlines are restored)",
    )
    firebase_credentials_file: Path | None = Field(
        default=None,
        description="Path to a service account JSON file (overrides discrete fields)",
    )
    firebase_rate_limit: int = Field(
        default=1000,
        ge=1,
        le=1_000_000,
        description="Maximum Firebase multicast calls per rate-limit window",
    )

    # Web Push (VAPID)
    webpush_enabled: bool = Field(
        default=False,
        description="Enable the browser Web Push backend",
    )
    vapid_subject: str | None = Field(
        default=None,
        description="VAPID contact subject (mailto: or https: URL)",
    )
    vapid_public_key: str | None = Field(
        default=None,
        description="VAPID public key (URL-safe base64)",
    )
    vapid_private_key: SecretStr | None = Field(
        default=None,
        description="VAPID private key (URL-safe base64 or PEM)",
    )
    webpush_rate_limit: int = Field(
        default=1000,
        ge=1,
        le=1_000_000,
        description="Maximum Web Push fanout calls per rate-limit window",
    )

    # Delivery
    default_ttl: int = Field(
        default=86400,
        ge=0,
        le=2_419_200,
        description="Default Web Push time-to-live in seconds",
    )
    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Per-call timeout in seconds for any push backend",
    )

    model_config = SettingsConfigDict(
        env_prefix="PUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @field_validator("vapid_subject")
    @classmethod
    def validate_vapid_subject(cls, v: str | None) -> str | None:
        """VAPID subjects must be a mailto: or https: URL."""
        if v is not None and not v.startswith(("mailto:", "https://")):
            msg = "vapid_subject must start with 'mailto:' or 'https://'"
            raise ValueError(msg)
        return v

    @property
    def firebase_configured(self) -> bool:
        """Check if Firebase has a usable service account."""
        if not self.firebase_enabled:
            return False
        if self.firebase_credentials_file is not None:
            return True
        return bool(
            self.firebase_project_id
            and self.firebase_client_email
            and self.firebase_private_key is not None
        )

    @property
    def webpush_configured(self) -> bool:
        """Check if the full VAPID triple is present."""
        return bool(
            self.webpush_enabled
            and self.vapid_subject
            and self.vapid_public_key
            and self.vapid_private_key is not None
        )

    def firebase_credentials(self) -> dict[str, Any]:
        """Build the service account mapping for firebase_admin.

        Returns:
            Service account dict accepted by ``credentials.Certificate``.
        """
        if self.firebase_credentials_file is not None:
            return json.loads(self.firebase_credentials_file.read_text(encoding="utf-8"))

        private_key = (
            self.firebase_private_key.get_secret_value() if self.firebase_private_key else ""
        )
        return {
            "type": "service_account",
            "project_id": self.firebase_project_id,
            "client_email": self.firebase_client_email,
            "private_key": private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }
