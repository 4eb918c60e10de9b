"""SQLAlchemy ORM models for owners, nominees, vault resources and emergency access."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, func, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vault_api.db.base import Base
from vault_api.db.enums import AccessLevel, NomineeStatus, PushPlatform


# =============================================================================
# Owners & Nominees
# =============================================================================

class User(Base):
    """
    A vault owner account.

    Profile fields consumed by the emergency access subsystem only; profile
    editing lives elsewhere.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    push_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    # Incremented to revoke all issued session tokens
    token_version: Mapped[int] = mapped_column(Integer, default=1, server_default=text("1"))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    nominees: Mapped[list["Nominee"]] = relationship(back_populates="owner")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


class Nominee(Base):
    """A trusted contact designated by an owner. Only verified nominees take part in escalation."""
    __tablename__ = "nominees"
    __table_args__ = (
        Index("idx_nominees_email_status", "email", "status"),
        Index("idx_nominees_owner", "owner_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=NomineeStatus.PENDING.value, server_default=text("'pending'"), nullable=False
    )
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    owner: Mapped["User"] = relationship(back_populates="nominees")


# =============================================================================
# Vault Resources (category > subcategory > document)
# =============================================================================

class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)


class Subcategory(Base):
    __tablename__ = "subcategories"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)


class Document(Base):
    """
    A stored vault document.

    file_path is the object key in the document bucket; it is never exposed
    directly, only through short-lived signed URLs.
    """
    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    subcategory_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("subcategories.id", ondelete="SET NULL"), nullable=True
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)


class AccessGrant(Base):
    """
    Nominee permission on one resource.

    Grants are never materialized per document: a category grant covers every
    subcategory and document beneath it.
    """
    __tablename__ = "access_grants"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "nominee_id", "resource_type", "resource_id",
            name="uq_access_grant_tuple",
        ),
        Index("idx_access_grants_resource", "resource_type", "resource_id"),
        Index("idx_access_grants_nominee", "nominee_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    nominee_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("nominees.id", ondelete="CASCADE"), nullable=False
    )
    resource_type: Mapped[str] = mapped_column(String(20), nullable=False)
    resource_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    access_level: Mapped[str] = mapped_column(
        String(20), default=AccessLevel.VIEW.value, server_default=text("'view'"), nullable=False
    )
    granted_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


# =============================================================================
# Inactivity Escalation
# =============================================================================

class InactivityTrigger(Base):
    """
    Per-owner inactivity configuration and runtime state.

    emergency_granted_at is set if and only if emergency_access_granted is true.
    Rows are deactivated, never deleted.
    """
    __tablename__ = "inactivity_triggers"
    __table_args__ = (
        CheckConstraint("threshold_days >= 1", name="ck_inactivity_threshold_positive"),
        CheckConstraint(
            "(emergency_access_granted AND emergency_granted_at IS NOT NULL)"
            " OR (NOT emergency_access_granted AND emergency_granted_at IS NULL)",
            name="ck_inactivity_grant_timestamp",
        ),
        Index("idx_inactivity_triggers_active", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    threshold_days: Mapped[int] = mapped_column(
        Integer, default=7, server_default=text("7"), nullable=False
    )
    last_activity_at: Mapped[datetime | None] = mapped_column(nullable=True)
    custom_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    email_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    sms_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    emergency_access_granted: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    emergency_granted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class AlertRecord(Base):
    """
    Append-only audit row, one per dispatch attempt.

    Captures intent-to-notify, not confirmed delivery. Also serves as the
    de-duplication source for day-window stages.
    """
    __tablename__ = "inactivity_alerts"
    __table_args__ = (
        Index("idx_inactivity_alerts_owner_stage", "owner_id", "stage", "sent_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    stage: Mapped[str] = mapped_column(String(30), nullable=False)
    inactive_days: Mapped[int] = mapped_column(Integer, nullable=False)
    recipient_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    custom_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(nullable=False)


class OtpChallenge(Base):
    """Single-use emergency portal code. Only the HMAC of the code is stored."""
    __tablename__ = "otp_challenges"
    __table_args__ = (
        Index("idx_otp_challenges_lookup", "nominee_email", "code_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    nominee_email: Mapped[str] = mapped_column(String(255), nullable=False)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class DeviceToken(Base):
    """Push registration token for one of an owner's devices."""
    __tablename__ = "device_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_device_token_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str] = mapped_column(
        String(20), default=PushPlatform.ANDROID.value, server_default=text("'android'"), nullable=False
    )
    device_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
