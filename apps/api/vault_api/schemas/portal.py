"""Pydantic schemas for the emergency access portal."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from vault_api.db.enums import AccessLevel


class OtpRequest(BaseModel):
    email: EmailStr


class OtpRequestResponse(BaseModel):
    success: bool = True
    message: str = "OTP sent successfully"
    expires_at: datetime


class OtpVerifyRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=4, max_length=12)


class PortalDocumentRead(BaseModel):
    id: UUID
    owner_id: UUID
    file_name: str
    file_type: str | None = None
    file_size: int | None = None
    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    uploaded_at: datetime | None = None
    access_level: AccessLevel
    can_download: bool

    model_config = {"from_attributes": True}


class OtpVerifyResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    documents: list[PortalDocumentRead]


class PortalDocumentList(BaseModel):
    documents: list[PortalDocumentRead]


class SignedUrlResponse(BaseModel):
    document_id: UUID
    file_name: str
    url: str
    expires_in: int

    model_config = {"from_attributes": True}
