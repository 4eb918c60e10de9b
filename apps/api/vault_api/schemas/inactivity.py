"""Pydantic schemas for inactivity triggers and alerts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class TriggerRead(BaseModel):
    owner_id: UUID
    is_active: bool
    threshold_days: int
    last_activity_at: datetime | None
    custom_message: str | None
    email_enabled: bool
    sms_enabled: bool
    emergency_access_granted: bool
    emergency_granted_at: datetime | None
    days_inactive: int = 0

    model_config = {"from_attributes": True}


class TriggerUpdate(BaseModel):
    """Partial update of owner trigger settings."""
    is_active: bool | None = None
    threshold_days: int | None = Field(None, ge=1, le=3650)
    custom_message: str | None = Field(None, max_length=2000)
    email_enabled: bool | None = None
    sms_enabled: bool | None = None


class AlertRead(BaseModel):
    id: UUID
    stage: str
    inactive_days: int
    recipient_type: str
    recipient_email: str
    delivered: bool
    error: str | None = None
    sent_at: datetime

    model_config = {"from_attributes": True}


class InactivityCheckResponse(BaseModel):
    """Shape consumed by the external scheduler."""
    success: bool
    processedUsers: int
    userIds: list[str]
