"""Access router - owner management of nominee grants on vault resources."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from vault_api.core.deps import get_current_user, get_db
from vault_api.db.enums import ResourceType
from vault_api.db.models import User
from vault_api.schemas.access import (
    AccessGrantRead,
    AccessibleResourcesResponse,
    AccessSummaryRead,
    BulkAccessRequest,
    GrantRequest,
    HasAccessResponse,
    MutationResponse,
    RevokeRequest,
    ToggleRequest,
)
from vault_api.services import access_control_service

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/summary", response_model=AccessSummaryRead)
def get_access_summary(
    resource_type: ResourceType,
    resource_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Nominees with a direct grant on exactly this resource."""
    return access_control_service.get_access_summary(db, user.id, resource_type, resource_id)


@router.get("/check", response_model=HasAccessResponse)
def check_access(
    resource_type: ResourceType,
    resource_id: UUID,
    nominee_id: UUID,
    category_id: UUID | None = Query(None),
    subcategory_id: UUID | None = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Resolve access including inheritance from the given parents."""
    access_control_service.get_owner_nominee(db, user.id, nominee_id)
    allowed = access_control_service.has_access(
        db,
        user.id,
        resource_type,
        resource_id,
        nominee_id,
        category_id=category_id,
        subcategory_id=subcategory_id,
    )
    return HasAccessResponse(has_access=allowed)


@router.post("/grant", response_model=AccessGrantRead)
def grant_access(
    data: GrantRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return access_control_service.grant_access(
        db,
        user.id,
        data.resource_type,
        data.resource_id,
        data.nominee_id,
        data.access_level,
        update_level=data.update_level,
    )


@router.post("/revoke", response_model=MutationResponse)
def revoke_access(
    data: RevokeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted = access_control_service.revoke_access(
        db, user.id, data.resource_type, data.resource_id, data.nominee_id
    )
    return MutationResponse(affected=1 if deleted else 0)


@router.post("/toggle", response_model=MutationResponse)
def toggle_access(
    data: ToggleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    access_control_service.toggle_access(
        db,
        user.id,
        data.resource_type,
        data.resource_id,
        data.nominee_id,
        data.grant,
        data.access_level,
    )
    return MutationResponse(affected=1)


@router.post("/bulk-grant", response_model=MutationResponse)
def bulk_grant_access(
    data: BulkAccessRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = access_control_service.bulk_grant_access(
        db, user.id, data.resource_type, data.resource_id, data.nominee_ids, data.access_level
    )
    return MutationResponse(affected=count)


@router.post("/bulk-revoke", response_model=MutationResponse)
def bulk_revoke_access(
    data: BulkAccessRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = access_control_service.bulk_revoke_access(
        db, user.id, data.resource_type, data.resource_id, data.nominee_ids
    )
    return MutationResponse(affected=count)


@router.delete("/resources/{resource_type}/{resource_id}", response_model=MutationResponse)
def clear_all_access(
    resource_type: ResourceType,
    resource_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = access_control_service.clear_all_access(db, user.id, resource_type, resource_id)
    return MutationResponse(affected=count)


@router.get("/nominees/{nominee_id}/resources", response_model=AccessibleResourcesResponse)
def get_nominee_resources(
    nominee_id: UUID,
    resource_type: ResourceType = Query(ResourceType.DOCUMENT),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    access_control_service.get_owner_nominee(db, user.id, nominee_id)
    ids = access_control_service.get_nominee_accessible_resources(
        db, user.id, resource_type, nominee_id
    )
    return AccessibleResourcesResponse(resource_type=resource_type, resource_ids=ids)
