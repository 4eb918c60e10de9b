"""Email delivery gateway.

The subsystem only needs `send({from, to[], subject, html})`. Any return
without an exception is treated as accepted; failures raise
EmailDeliveryError so callers can record a per-recipient outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from vault_api.core.config import settings
from vault_api.core.errors import EmailDeliveryError
from vault_api.services.http_service import RetryPolicy, request_with_retries

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0
RESEND_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=4.0)


@dataclass(frozen=True)
class EmailReceipt:
    message_id: str | None


class EmailGateway(Protocol):
    async def send(
        self,
        *,
        from_email: str,
        to: list[str],
        subject: str,
        html: str,
    ) -> EmailReceipt:
        """Hand a message to the provider. Raises EmailDeliveryError on failure."""


def _error_detail(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get("message") or data.get("error")
    return None


class ResendEmailGateway:
    """Resend HTTP API sender."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self._transport = transport
        self._retry_policy = retry_policy or RESEND_RETRY_POLICY

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(
        self,
        *,
        from_email: str,
        to: list[str],
        subject: str,
        html: str,
    ) -> EmailReceipt:
        if not self.api_key:
            raise EmailDeliveryError("Email gateway not configured (missing RESEND_API_KEY)")
        if not to:
            raise EmailDeliveryError("No recipients")

        payload = {"from": from_email, "to": to, "subject": subject, "html": html}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=RESEND_TIMEOUT_SECONDS, transport=self._transport
            ) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(RESEND_SEND_URL, headers=headers, json=payload)

                response = await request_with_retries(
                    request_fn, policy=self._retry_policy, label="resend"
                )
        except httpx.RequestError as exc:
            raise EmailDeliveryError(f"Resend unreachable: {exc}") from exc

        if 200 <= response.status_code < 300:
            data = response.json()
            message_id = data.get("id") if isinstance(data, dict) else None
            return EmailReceipt(message_id=message_id if isinstance(message_id, str) else None)

        detail = _error_detail(response)
        if detail:
            raise EmailDeliveryError(f"Resend API error: {response.status_code} ({detail})")
        raise EmailDeliveryError(f"Resend API error: {response.status_code}")


def get_email_gateway() -> EmailGateway:
    """Default gateway for the running process."""
    return ResendEmailGateway()
