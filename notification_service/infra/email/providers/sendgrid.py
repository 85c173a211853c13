"""SendGrid email provider.

Primary email backend: SendGrid Web API v3 over httpx.

Usage:
    provider = SendGridProvider(get_email_settings())
    result = await provider.send(payload)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from notification_service.core.exceptions import TransportException
from notification_service.infra.ratelimit.status import Backend

from .base import BaseEmailProvider, EmailDeliveryResult

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings
    from notification_service.infra.email.schemas import EmailPayload

logger = logging.getLogger(__name__)


class SendGridProvider(BaseEmailProvider):
    """SendGrid email provider using API v3.

    A 202 Accepted response is success; any other status is a failure whose
    ``error_code`` classifies the HTTP error.

    Args:
        settings: Email settings with ``sendgrid_api_key``.
        client: Optional shared ``httpx.AsyncClient``. When omitted a client
            is opened per call.
    """

    SEND_ENDPOINT = "/mail/send"
    HEALTH_ENDPOINT = "/scopes"

    def __init__(
        self,
        settings: EmailSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client
        self._base_url = settings.sendgrid_api_url.rstrip("/")
        super().__init__(settings)

    @property
    def provider_name(self) -> str:
        """Get provider name."""
        return Backend.SENDGRID.value

    @property
    def is_configured(self) -> bool:
        return self._settings.sendgrid_configured

    def _headers(self) -> dict[str, str]:
        api_key = self._settings.sendgrid_api_key
        token = api_key.get_secret_value() if api_key is not None else ""
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, payload: EmailPayload) -> dict[str, Any]:
        """Build the SendGrid API request body.

        Args:
            payload: Email to send

        Returns:
            Dict body for POST /mail/send
        """
        from_email, from_name = self._sender()
        body: dict[str, Any] = {
            "personalizations": [{"to": [{"email": payload.to}]}],
            "from": {"email": from_email},
            "subject": payload.subject,
            # text/plain must precede text/html
            "content": [
                {"type": "text/plain", "value": payload.plain_text()},
                {"type": "text/html", "value": payload.html},
            ],
        }
        if from_name:
            body["from"]["name"] = from_name
        return body

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> httpx.Response:
        return await client.post(
            f"{self._base_url}{self.SEND_ENDPOINT}",
            json=body,
            headers=self._headers(),
            timeout=self._timeout,
        )

    async def _do_send(self, payload: EmailPayload) -> EmailDeliveryResult:
        """Send email via SendGrid API.

        Raises:
            TransportException: On timeouts and connection errors.
        """
        body = self._build_payload(payload)

        try:
            if self._client is not None:
                response = await self._post(self._client, body)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, body)
        except httpx.TimeoutException as e:
            raise TransportException(
                detail="SendGrid API timeout",
                provider=self.provider_name,
                error_code="TIMEOUT",
            ) from e
        except httpx.HTTPError as e:
            raise TransportException(
                detail=f"SendGrid HTTP error: {e}",
                provider=self.provider_name,
                error_code="HTTP_ERROR",
            ) from e

        if response.status_code == 202:
            return EmailDeliveryResult.success_result(
                provider=self.provider_name,
                message_id=response.headers.get("X-Message-Id"),
                metadata={"status_code": response.status_code},
            )

        return EmailDeliveryResult.failure_result(
            provider=self.provider_name,
            error=f"SendGrid API error ({response.status_code}): {self._error_detail(response)}",
            error_code=self._classify_http_error(response.status_code),
            metadata={"status_code": response.status_code},
        )

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Join SendGrid's ``errors[].message`` entries, falling back to the raw body."""
        try:
            data = response.json()
        except ValueError:
            return response.text
        errors = data.get("errors") if isinstance(data, dict) else None
        if not errors:
            return response.text
        return "; ".join(str(e.get("message", e)) for e in errors)

    def _classify_http_error(self, status_code: int) -> str:
        """Classify HTTP status code into error code."""
        if status_code == 401:
            return "AUTH_FAILED"
        if status_code == 403:
            return "FORBIDDEN"
        if status_code == 429:
            return "RATE_LIMITED"
        if status_code == 400:
            return "BAD_REQUEST"
        if status_code >= 500:
            return "SERVER_ERROR"
        return "API_ERROR"

    async def _do_health_check(self) -> bool:
        """Check that the API key is accepted."""
        url = f"{self._base_url}{self.HEALTH_ENDPOINT}"
        if self._client is not None:
            response = await self._client.get(url, headers=self._headers())
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, headers=self._headers())
        return response.status_code == 200


__all__ = ["SendGridProvider"]
