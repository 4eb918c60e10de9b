"""Pydantic schemas for push notifications."""

from uuid import UUID

from pydantic import BaseModel, Field

from vault_api.db.enums import PushPlatform


class PushSendRequest(BaseModel):
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)
    data: dict[str, str] | None = None


class PushSendResponse(BaseModel):
    success: bool
    sent: int
    total: int
    cleaned: int
    message: str | None = None


class DeviceTokenRegister(BaseModel):
    token: str = Field(..., min_length=1, max_length=4096)
    platform: PushPlatform = PushPlatform.ANDROID
    device_name: str | None = Field(None, max_length=255)


class DeviceTokenRead(BaseModel):
    id: UUID
    platform: PushPlatform
    device_name: str | None = None

    model_config = {"from_attributes": True}
