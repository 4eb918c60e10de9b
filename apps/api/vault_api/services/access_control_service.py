"""
Access control service.

Nominee grants on vault resources and the resolver that answers "may this
nominee see this resource", including access inherited from a parent
category or subcategory. Grants are stored only at the level they were
made; inheritance is computed at read time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vault_api.core.errors import VerificationError
from vault_api.db.enums import AccessLevel, ResourceType
from vault_api.db.models import AccessGrant, Document, Nominee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NomineeAccess:
    nominee_id: UUID
    nominee_name: str
    nominee_email: str
    status: str
    has_access: bool
    access_level: str | None = None
    granted_at: datetime | None = None


@dataclass
class AccessSummary:
    total_nominees: int
    nominees_with_access: int
    access_details: list[NomineeAccess] = field(default_factory=list)


def _resource_type_value(resource_type: ResourceType | str) -> str:
    value = resource_type.value if isinstance(resource_type, ResourceType) else str(resource_type)
    if not ResourceType.has_value(value):
        raise VerificationError(f"Unknown resource type '{value}'", code="invalid_resource_type")
    return value


def _access_level_value(access_level: AccessLevel | str) -> str:
    value = access_level.value if isinstance(access_level, AccessLevel) else str(access_level)
    if not AccessLevel.has_value(value):
        raise VerificationError(f"Unknown access level '{value}'", code="invalid_access_level")
    return value


def get_owner_nominee(db: Session, owner_id: UUID, nominee_id: UUID) -> Nominee:
    """Load a nominee scoped to owner. Raises VerificationError (404) otherwise."""
    nominee = db.query(Nominee).filter(
        Nominee.id == nominee_id,
        Nominee.owner_id == owner_id,
        Nominee.deleted_at.is_(None),
    ).first()
    if not nominee:
        raise VerificationError("Nominee not found", code="nominee_not_found", status_code=404)
    return nominee


def get_grant(
    db: Session,
    owner_id: UUID,
    nominee_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
) -> AccessGrant | None:
    return db.query(AccessGrant).filter(
        AccessGrant.owner_id == owner_id,
        AccessGrant.nominee_id == nominee_id,
        AccessGrant.resource_type == _resource_type_value(resource_type),
        AccessGrant.resource_id == resource_id,
    ).first()


def _has_grant(
    db: Session,
    owner_id: UUID,
    nominee_id: UUID,
    resource_type: ResourceType,
    resource_id: UUID,
) -> bool:
    return get_grant(db, owner_id, nominee_id, resource_type, resource_id) is not None


# =============================================================================
# Resolver
# =============================================================================

def has_access(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
    nominee_id: UUID,
    category_id: UUID | None = None,
    subcategory_id: UUID | None = None,
) -> bool:
    """
    Check whether a nominee may access a resource.

    Direct grant first, then the parents the caller knows about:
    document -> category, then subcategory; subcategory -> category.
    """
    resource_type = ResourceType(_resource_type_value(resource_type))

    if _has_grant(db, owner_id, nominee_id, resource_type, resource_id):
        return True

    if resource_type == ResourceType.DOCUMENT:
        if category_id and _has_grant(db, owner_id, nominee_id, ResourceType.CATEGORY, category_id):
            return True
        if subcategory_id and _has_grant(
            db, owner_id, nominee_id, ResourceType.SUBCATEGORY, subcategory_id
        ):
            return True

    if resource_type == ResourceType.SUBCATEGORY and category_id:
        if _has_grant(db, owner_id, nominee_id, ResourceType.CATEGORY, category_id):
            return True

    return False


def has_document_access(db: Session, document: Document, nominee_id: UUID) -> bool:
    """Resolve access for a loaded document using its own parent ids."""
    return has_access(
        db,
        document.owner_id,
        ResourceType.DOCUMENT,
        document.id,
        nominee_id,
        category_id=document.category_id,
        subcategory_id=document.subcategory_id,
    )


def get_access_summary(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
) -> AccessSummary:
    """
    Who has a direct grant on exactly this resource.

    Inherited access is deliberately not reported so the owner's add/remove
    toggle maps one-to-one onto grant rows.
    """
    resource_value = _resource_type_value(resource_type)
    nominees = db.query(Nominee).filter(
        Nominee.owner_id == owner_id,
        Nominee.deleted_at.is_(None),
    ).order_by(Nominee.created_at.asc()).all()

    grants = db.query(AccessGrant).filter(
        AccessGrant.owner_id == owner_id,
        AccessGrant.resource_type == resource_value,
        AccessGrant.resource_id == resource_id,
    ).all()
    by_nominee = {grant.nominee_id: grant for grant in grants}

    details = []
    for nominee in nominees:
        grant = by_nominee.get(nominee.id)
        details.append(
            NomineeAccess(
                nominee_id=nominee.id,
                nominee_name=nominee.full_name,
                nominee_email=nominee.email,
                status=nominee.status,
                has_access=grant is not None,
                access_level=grant.access_level if grant else None,
                granted_at=grant.granted_at if grant else None,
            )
        )

    return AccessSummary(
        total_nominees=len(nominees),
        nominees_with_access=sum(1 for d in details if d.has_access),
        access_details=details,
    )


def get_nominee_accessible_resources(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    nominee_id: UUID,
) -> list[UUID]:
    """Resource ids of one type the nominee holds a direct grant on."""
    rows = db.query(AccessGrant.resource_id).filter(
        AccessGrant.owner_id == owner_id,
        AccessGrant.nominee_id == nominee_id,
        AccessGrant.resource_type == _resource_type_value(resource_type),
    ).order_by(AccessGrant.granted_at.asc()).all()
    return [row[0] for row in rows]


# =============================================================================
# Mutations (idempotent)
# =============================================================================

def grant_access(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
    nominee_id: UUID,
    access_level: AccessLevel | str = AccessLevel.VIEW,
    update_level: bool = False,
) -> AccessGrant:
    """
    Grant a nominee access to a resource.

    Granting an existing tuple is a no-op that returns the existing row
    (its level only changes when update_level is set). A concurrent insert
    losing the unique-constraint race is treated the same way.
    """
    get_owner_nominee(db, owner_id, nominee_id)
    resource_value = _resource_type_value(resource_type)
    level_value = _access_level_value(access_level)

    existing = get_grant(db, owner_id, nominee_id, resource_value, resource_id)
    if existing:
        if update_level and existing.access_level != level_value:
            existing.access_level = level_value
            db.commit()
            db.refresh(existing)
        return existing

    grant = AccessGrant(
        owner_id=owner_id,
        nominee_id=nominee_id,
        resource_type=resource_value,
        resource_id=resource_id,
        access_level=level_value,
    )
    db.add(grant)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            "Access grant already exists, treating as granted",
            extra={"owner_id": str(owner_id), "nominee_id": str(nominee_id)},
        )
        existing = get_grant(db, owner_id, nominee_id, resource_value, resource_id)
        if existing is None:
            raise
        return existing

    db.refresh(grant)
    return grant


def revoke_access(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
    nominee_id: UUID,
) -> bool:
    """Remove a direct grant. Returns whether a row was deleted; missing grants are a no-op."""
    deleted = db.query(AccessGrant).filter(
        AccessGrant.owner_id == owner_id,
        AccessGrant.nominee_id == nominee_id,
        AccessGrant.resource_type == _resource_type_value(resource_type),
        AccessGrant.resource_id == resource_id,
    ).delete(synchronize_session=False)
    db.commit()
    return deleted > 0


def toggle_access(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
    nominee_id: UUID,
    grant: bool,
    access_level: AccessLevel | str = AccessLevel.VIEW,
) -> None:
    if grant:
        grant_access(db, owner_id, resource_type, resource_id, nominee_id, access_level)
    else:
        revoke_access(db, owner_id, resource_type, resource_id, nominee_id)


def bulk_grant_access(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
    nominee_ids: list[UUID],
    access_level: AccessLevel | str = AccessLevel.VIEW,
) -> int:
    """Grant to several nominees. Returns number of nominees processed."""
    unique_ids = list(dict.fromkeys(nominee_ids))
    for nominee_id in unique_ids:
        grant_access(db, owner_id, resource_type, resource_id, nominee_id, access_level)
    return len(unique_ids)


def bulk_revoke_access(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
    nominee_ids: list[UUID],
) -> int:
    """Revoke from several nominees. Returns number of grants removed."""
    if not nominee_ids:
        return 0
    deleted = db.query(AccessGrant).filter(
        AccessGrant.owner_id == owner_id,
        AccessGrant.nominee_id.in_(list(nominee_ids)),
        AccessGrant.resource_type == _resource_type_value(resource_type),
        AccessGrant.resource_id == resource_id,
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


def clear_all_access(
    db: Session,
    owner_id: UUID,
    resource_type: ResourceType | str,
    resource_id: UUID,
) -> int:
    """Drop every grant on a resource (used when the resource is deleted)."""
    deleted = db.query(AccessGrant).filter(
        AccessGrant.owner_id == owner_id,
        AccessGrant.resource_type == _resource_type_value(resource_type),
        AccessGrant.resource_id == resource_id,
    ).delete(synchronize_session=False)
    db.commit()
    return deleted
