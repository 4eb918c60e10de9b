"""Push notification gateway (Firebase Cloud Messaging HTTP v1).

Sends to every registered device of one owner and removes registration
tokens FCM reports as no longer valid.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Protocol
from uuid import UUID

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from sqlalchemy.orm import Session

from vault_api.core.config import settings
from vault_api.core.errors import PushDeliveryError
from vault_api.db.models import DeviceToken
from vault_api.services.http_service import RetryPolicy, request_with_retries

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
FCM_TIMEOUT_SECONDS = 10.0
FCM_RETRY_POLICY = RetryPolicy(max_attempts=2, base_delay=0.5, max_delay=2.0)


class FcmSendStatus(str, Enum):
    SENT = "sent"
    UNREGISTERED = "unregistered"
    FAILED = "failed"


@dataclass(frozen=True)
class PushResult:
    success: bool
    sent: int
    total: int
    cleaned: int
    error: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if data["error"] is None:
            data.pop("error")
        return data


def _load_service_account_info(raw: str) -> dict:
    """Accept inline JSON (hosted envs) or a path to the key file (local dev)."""
    raw = raw.strip()
    if raw.startswith("{"):
        return json.loads(raw)
    if not os.path.exists(raw):
        raise PushDeliveryError(f"FCM service account file not found: {raw}")
    with open(raw, encoding="utf-8") as f:
        return json.load(f)


class FcmClient:
    """Minimal FCM v1 sender with OAuth access tokens from a service account."""

    def __init__(
        self,
        project_id: str | None = None,
        service_account_json: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.project_id = project_id if project_id is not None else settings.FCM_PROJECT_ID
        self._service_account_json = (
            service_account_json if service_account_json is not None else settings.FCM_SERVICE_ACCOUNT_JSON
        )
        self._transport = transport
        self._credentials = None

    def is_configured(self) -> bool:
        return bool(self.project_id and self._service_account_json)

    async def access_token(self) -> str:
        if self._credentials is None:
            info = _load_service_account_info(self._service_account_json)
            self._credentials = service_account.Credentials.from_service_account_info(
                info, scopes=[FCM_SCOPE]
            )
        if not self._credentials.valid:
            # google-auth refresh is blocking
            await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
        return self._credentials.token

    async def send(
        self,
        device_token: str,
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> FcmSendStatus:
        access_token = await self.access_token()
        message = {
            "message": {
                "token": device_token,
                "notification": {"title": title, "body": body},
                "android": {
                    "priority": "high",
                    "notification": {"sound": "default", "channel_id": "default"},
                },
                "data": data or {},
            }
        }
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        url = FCM_SEND_URL.format(project_id=self.project_id)

        async with httpx.AsyncClient(timeout=FCM_TIMEOUT_SECONDS, transport=self._transport) as client:

            async def request_fn() -> httpx.Response:
                return await client.post(url, headers=headers, json=message)

            response = await request_with_retries(request_fn, policy=FCM_RETRY_POLICY, label="fcm")

        if 200 <= response.status_code < 300:
            return FcmSendStatus.SENT
        if _is_unregistered(response):
            return FcmSendStatus.UNREGISTERED
        logger.warning("FCM send failed with status %s", response.status_code)
        return FcmSendStatus.FAILED


def _is_unregistered(response: httpx.Response) -> bool:
    if response.status_code == 404:
        return True
    try:
        error = response.json().get("error", {})
    except (ValueError, AttributeError):
        return False
    for detail in error.get("details", []) or []:
        if isinstance(detail, dict) and detail.get("errorCode") == "UNREGISTERED":
            return True
    return False


async def send_push_to_user(
    db: Session,
    user_id: UUID,
    title: str,
    body: str,
    data: dict[str, object] | None = None,
    *,
    client: FcmClient | None = None,
) -> PushResult:
    """
    Send a push to every device registered for user_id.

    Tokens FCM reports as unregistered are deleted. Raises PushDeliveryError
    when devices exist but FCM is not configured.
    """
    tokens = db.query(DeviceToken).filter(DeviceToken.user_id == user_id).all()
    if not tokens:
        return PushResult(success=True, sent=0, total=0, cleaned=0)

    client = client or FcmClient()
    if not client.is_configured():
        raise PushDeliveryError("Push gateway not configured (missing FCM_PROJECT_ID or credentials)")

    payload = {k: str(v) for k, v in (data or {}).items()}
    sent = 0
    cleaned = 0
    for device in tokens:
        try:
            status = await client.send(device.token, title, body, payload)
        except httpx.RequestError:
            logger.warning("FCM unreachable for device %s", device.id, exc_info=True)
            continue
        if status == FcmSendStatus.SENT:
            sent += 1
        elif status == FcmSendStatus.UNREGISTERED:
            db.delete(device)
            cleaned += 1

    if cleaned:
        db.commit()

    logger.info("Push sent %s/%s (cleaned %s)", sent, len(tokens), cleaned, extra={"owner_id": str(user_id)})
    return PushResult(success=True, sent=sent, total=len(tokens), cleaned=cleaned)


class PushGateway(Protocol):
    async def send_push(
        self,
        user_id: UUID,
        title: str,
        body: str,
        data: dict[str, object] | None = None,
    ) -> PushResult:
        """Best-effort push to one owner."""


class InProcessPushGateway:
    """Push gateway bound to a session; used by the monitor with service-level trust."""

    def __init__(self, db: Session, client: FcmClient | None = None):
        self.db = db
        self.client = client or FcmClient()

    async def send_push(
        self,
        user_id: UUID,
        title: str,
        body: str,
        data: dict[str, object] | None = None,
    ) -> PushResult:
        return await send_push_to_user(self.db, user_id, title, body, data, client=self.client)


def get_push_gateway(db: Session) -> PushGateway | None:
    """Return a gateway when FCM is configured, otherwise None (push is skipped)."""
    client = FcmClient()
    if not client.is_configured():
        return None
    return InProcessPushGateway(db, client)


def register_device_token(
    db: Session,
    user_id: UUID,
    token: str,
    platform: str,
    device_name: str | None = None,
) -> DeviceToken:
    """Register (or refresh) a device for an owner. Re-registering is a no-op."""
    device = db.query(DeviceToken).filter(
        DeviceToken.user_id == user_id,
        DeviceToken.token == token,
    ).first()
    if device is None:
        device = DeviceToken(user_id=user_id, token=token)
        db.add(device)
    device.platform = platform
    if device_name is not None:
        device.device_name = device_name
    db.commit()
    db.refresh(device)
    return device


def remove_device_token(db: Session, user_id: UUID, device_id: UUID) -> bool:
    deleted = db.query(DeviceToken).filter(
        DeviceToken.id == device_id,
        DeviceToken.user_id == user_id,
    ).delete(synchronize_session=False)
    db.commit()
    return deleted > 0
