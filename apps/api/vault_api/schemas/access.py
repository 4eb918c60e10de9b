"""Pydantic schemas for nominee access grants."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from vault_api.db.enums import AccessLevel, ResourceType


class ResourceRef(BaseModel):
    """A resource plus the parents the caller knows about."""
    resource_type: ResourceType
    resource_id: UUID
    category_id: UUID | None = None
    subcategory_id: UUID | None = None


class GrantRequest(BaseModel):
    resource_type: ResourceType
    resource_id: UUID
    nominee_id: UUID
    access_level: AccessLevel = AccessLevel.VIEW
    update_level: bool = False


class RevokeRequest(BaseModel):
    resource_type: ResourceType
    resource_id: UUID
    nominee_id: UUID


class ToggleRequest(BaseModel):
    resource_type: ResourceType
    resource_id: UUID
    nominee_id: UUID
    grant: bool
    access_level: AccessLevel = AccessLevel.VIEW


class BulkAccessRequest(BaseModel):
    resource_type: ResourceType
    resource_id: UUID
    nominee_ids: list[UUID] = Field(..., min_length=1, max_length=100)
    access_level: AccessLevel = AccessLevel.VIEW


class AccessGrantRead(BaseModel):
    id: UUID
    nominee_id: UUID
    resource_type: ResourceType
    resource_id: UUID
    access_level: AccessLevel
    granted_at: datetime

    model_config = {"from_attributes": True}


class NomineeAccessRead(BaseModel):
    nominee_id: UUID
    nominee_name: str
    nominee_email: str
    status: str
    has_access: bool
    access_level: AccessLevel | None = None
    granted_at: datetime | None = None

    model_config = {"from_attributes": True}


class AccessSummaryRead(BaseModel):
    total_nominees: int
    nominees_with_access: int
    access_details: list[NomineeAccessRead]

    model_config = {"from_attributes": True}


class HasAccessResponse(BaseModel):
    has_access: bool


class MutationResponse(BaseModel):
    success: bool = True
    affected: int = 0


class AccessibleResourcesResponse(BaseModel):
    resource_type: ResourceType
    resource_ids: list[UUID]
