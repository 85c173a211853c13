"""SMTP email provider using aiosmtplib.

Secondary email backend. Supports STARTTLS (port 587), implicit TLS
(port 465) and plain connections, with LOGIN/PLAIN authentication.
"""

from __future__ import annotations

import logging
import ssl
import uuid
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import TYPE_CHECKING

import aiosmtplib

from notification_service.core.exceptions import TransportException
from notification_service.infra.ratelimit.status import Backend

from .base import BaseEmailProvider, EmailDeliveryResult

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings
    from notification_service.infra.email.schemas import EmailPayload

logger = logging.getLogger(__name__)


class SMTPProvider(BaseEmailProvider):
    """SMTP relay provider.

    Example:
        settings = EmailSettings(
            smtp_enabled=True,
            smtp_host="smtp.example.com",
            smtp_username="user",
            smtp_password="pass",
        )
        provider = SMTPProvider(settings)
        result = await provider.send(payload)
    """

    def __init__(self, settings: EmailSettings) -> None:
        super().__init__(settings)

        if self.is_configured:
            logger.info(
                "SMTP relay configured",
                extra={
                    "smtp_url": settings.get_smtp_url(),
                    "use_tls": settings.smtp_use_tls,
                    "use_ssl": settings.smtp_use_ssl,
                },
            )

    @property
    def provider_name(self) -> str:
        """Get provider name."""
        return Backend.SMTP.value

    @property
    def is_configured(self) -> bool:
        return self._settings.smtp_configured

    def _create_ssl_context(self) -> ssl.SSLContext | None:
        """Create SSL context for TLS/SSL connections."""
        if not (self._settings.smtp_use_tls or self._settings.smtp_use_ssl):
            return None

        context = ssl.create_default_context()
        if not self._settings.validate_certs:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _client(self, timeout: float) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self._settings.smtp_host,
            port=self._settings.smtp_port,
            use_tls=self._settings.smtp_use_ssl,  # Implicit TLS
            start_tls=self._settings.smtp_use_tls,  # STARTTLS
            tls_context=self._create_ssl_context(),
            timeout=timeout,
        )

    def _build_mime_message(self, payload: EmailPayload) -> MIMEMultipart:
        """Build a multipart/alternative message with text and HTML parts."""
        from_email, from_name = self._sender()

        mime_msg = MIMEMultipart("alternative")
        mime_msg["From"] = formataddr((from_name, from_email)) if from_name else from_email
        mime_msg["To"] = payload.to
        mime_msg["Subject"] = payload.subject
        mime_msg["Message-ID"] = f"<{uuid.uuid4()}@{self._settings.smtp_host}>"
        mime_msg["Date"] = datetime.now(UTC).strftime("%a, %d %b %Y %H:%M:%S +0000")

        mime_msg.attach(MIMEText(payload.plain_text(), "plain", "utf-8"))
        mime_msg.attach(MIMEText(payload.html, "html", "utf-8"))
        return mime_msg

    async def _do_send(self, payload: EmailPayload) -> EmailDeliveryResult:
        """Send email via SMTP.

        Raises:
            TransportException: On connection, authentication or protocol errors.
        """
        mime_message = self._build_mime_message(payload)
        message_id = mime_message["Message-ID"]
        password = self._settings.smtp_password

        try:
            smtp = self._client(self._timeout)
            async with smtp:
                if self._settings.smtp_username and password is not None:
                    await smtp.login(self._settings.smtp_username, password.get_secret_value())
                errors, _response = await smtp.send_message(mime_message)
        except aiosmtplib.SMTPAuthenticationError as e:
            raise TransportException(
                detail=f"SMTP authentication failed: {e}",
                provider=self.provider_name,
                error_code="AUTH_FAILED",
            ) from e
        except aiosmtplib.SMTPRecipientsRefused as e:
            raise TransportException(
                detail=f"All recipients refused: {e}",
                provider=self.provider_name,
                error_code="RECIPIENTS_REFUSED",
            ) from e
        except aiosmtplib.SMTPConnectError as e:
            raise TransportException(
                detail=f"SMTP connection failed: {e}",
                provider=self.provider_name,
                error_code="CONNECTION_ERROR",
            ) from e
        except aiosmtplib.SMTPException as e:
            raise TransportException(
                detail=f"SMTP error: {e}",
                provider=self.provider_name,
                error_code="SMTP_ERROR",
            ) from e

        if payload.to in errors:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"Recipient rejected: {errors[payload.to]}",
                error_code="RECIPIENTS_REFUSED",
                metadata={"message_id": message_id},
            )

        return EmailDeliveryResult.success_result(
            provider=self.provider_name,
            message_id=message_id,
            metadata={"host": self._settings.smtp_host, "port": self._settings.smtp_port},
        )

    async def _do_health_check(self) -> bool:
        """Connect (and authenticate when credentials are set), then quit."""
        smtp = self._client(self._timeout)
        await smtp.connect()
        try:
            password = self._settings.smtp_password
            if self._settings.smtp_username and password is not None:
                await smtp.login(self._settings.smtp_username, password.get_secret_value())
        finally:
            await smtp.quit()
        return True


__all__ = ["SMTPProvider"]
