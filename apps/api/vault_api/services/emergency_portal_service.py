"""
Emergency portal verification.

A nominee proves their identity with email + one-time code before the
documents shared with them are listed:

    AwaitingEmail --request_otp--> AwaitingOtp --verify_otp--> Authorized

Only verified nominees of an owner whose emergency access has been
granted get past AwaitingEmail. Codes are single-use; consumption is one
conditional UPDATE so two concurrent submissions cannot both succeed.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from vault_api.core.config import settings
from vault_api.core.errors import VerificationError
from vault_api.core.security import (
    create_portal_token,
    generate_otp_code,
    hash_otp_code,
    normalize_otp_code,
)
from vault_api.core.structured_logging import build_log_context
from vault_api.db.enums import AccessLevel, NomineeStatus, ResourceType
from vault_api.db.models import AccessGrant, Document, InactivityTrigger, Nominee, OtpChallenge
from vault_api.services.email_gateway import EmailGateway, get_email_gateway
from vault_api.services.storage_service import create_signed_url
from vault_api.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your Emergency Access OTP Code"


@dataclass(frozen=True)
class PortalDocument:
    id: UUID
    owner_id: UUID
    file_name: str
    file_type: str | None
    file_size: int | None
    category_id: UUID | None
    subcategory_id: UUID | None
    uploaded_at: datetime | None
    access_level: str
    can_download: bool
    file_path: str


@dataclass(frozen=True)
class OtpRequestResult:
    nominee_email: str
    expires_at: datetime


@dataclass(frozen=True)
class PortalAuthorization:
    token: str
    expires_in: int
    nominee_email: str
    documents: list[PortalDocument]


@dataclass(frozen=True)
class SignedDocumentUrl:
    document_id: UUID
    file_name: str
    url: str
    expires_in: int


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def can_download(access_level: str) -> bool:
    if access_level == AccessLevel.DOWNLOAD.value:
        return True
    return settings.PORTAL_VIEW_GRANTS_DOWNLOAD and access_level == AccessLevel.VIEW.value


# =============================================================================
# AwaitingEmail
# =============================================================================

def get_authorized_nominees(db: Session, email: str) -> list[Nominee]:
    """
    Verified nominee rows for email whose owner has emergency access granted.

    Raises:
        VerificationError 404: no verified nominee with this email
        VerificationError 403: emergency access not granted for any owner
    """
    email = normalize_email(email)
    if not email:
        raise VerificationError("Nominee email is required", code="email_required")

    nominees = db.query(Nominee).filter(
        func.lower(Nominee.email) == email,
        Nominee.status == NomineeStatus.VERIFIED.value,
        Nominee.deleted_at.is_(None),
    ).all()
    if not nominees:
        raise VerificationError(
            "Nominee not found or not verified", code="nominee_not_verified", status_code=404
        )

    granted_owner_ids = {
        row[0]
        for row in db.query(InactivityTrigger.owner_id).filter(
            InactivityTrigger.owner_id.in_([n.owner_id for n in nominees]),
            InactivityTrigger.is_active.is_(True),
            InactivityTrigger.emergency_access_granted.is_(True),
        ).all()
    }
    authorized = [n for n in nominees if n.owner_id in granted_owner_ids]
    if not authorized:
        raise VerificationError(
            "Emergency access not granted for this account",
            code="emergency_access_not_granted",
            status_code=403,
        )
    return authorized


def _otp_email_html(nominee_name: str, code: str) -> str:
    return (
        "<h1>Emergency Access Verification</h1>"
        f"<p>Dear {html.escape(nominee_name)},</p>"
        "<p>Your OTP code for emergency access is:</p>"
        '<h2 style="font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #6D28D9;">'
        f"{code}</h2>"
        f"<p>This code will expire in {settings.OTP_TTL_MINUTES} minutes.</p>"
        "<p>If you did not request this code, please ignore this email.</p>"
        "<p>Best regards,<br>Family Vault Team</p>"
    )


async def request_otp(
    db: Session,
    email: str,
    *,
    email_gateway: EmailGateway | None = None,
    now: datetime | None = None,
) -> OtpRequestResult:
    """
    Issue and email a one-time code.

    Older unexpired codes stay valid; each is independently single-use.

    Raises:
        VerificationError: nominee not eligible
        EmailDeliveryError: the code could not be sent
    """
    nominees = get_authorized_nominees(db, email)
    email = normalize_email(email)
    now = ensure_utc(now) or utcnow()

    code = generate_otp_code()
    challenge = OtpChallenge(
        nominee_email=email,
        code_hash=hash_otp_code(email, code),
        expires_at=now + timedelta(minutes=settings.OTP_TTL_MINUTES),
        created_at=now,
    )
    db.add(challenge)
    db.commit()
    db.refresh(challenge)

    gateway = email_gateway or get_email_gateway()
    await gateway.send(
        from_email=settings.EMAIL_FROM,
        to=[email],
        subject=OTP_SUBJECT,
        html=_otp_email_html(nominees[0].full_name, code),
    )

    logger.info(
        "Emergency OTP issued",
        extra=build_log_context(nominee_id=nominees[0].id, route="emergency.otp.request"),
    )
    return OtpRequestResult(nominee_email=email, expires_at=challenge.expires_at)


# =============================================================================
# AwaitingOtp
# =============================================================================

def consume_otp(db: Session, email: str, code: str, now: datetime | None = None) -> OtpChallenge | None:
    """
    Atomically mark the newest matching live challenge as verified.

    Returns the consumed challenge, or None when nothing matched or a
    concurrent request consumed it first.
    """
    email = normalize_email(email)
    now = ensure_utc(now) or utcnow()
    code_hash = hash_otp_code(email, code)

    candidate = db.query(OtpChallenge.id).filter(
        OtpChallenge.nominee_email == email,
        OtpChallenge.code_hash == code_hash,
        OtpChallenge.verified_at.is_(None),
        OtpChallenge.expires_at > now,
    ).order_by(OtpChallenge.created_at.desc()).first()
    if candidate is None:
        return None

    challenge_id = candidate[0]
    result = db.execute(
        update(OtpChallenge)
        .where(
            OtpChallenge.id == challenge_id,
            OtpChallenge.verified_at.is_(None),
            OtpChallenge.expires_at > now,
        )
        .values(verified_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return None
    return db.get(OtpChallenge, challenge_id)


def verify_otp(db: Session, email: str, code: str, now: datetime | None = None) -> PortalAuthorization:
    """
    Exchange a code for a portal session and the nominee's document list.

    Eligibility is re-checked before the code is consumed.

    Raises:
        VerificationError: malformed, wrong, expired or already used code,
            or nominee no longer eligible
    """
    email = normalize_email(email)
    code = normalize_otp_code(code or "")
    if len(code) != settings.OTP_LENGTH or not code.isdigit():
        raise VerificationError(
            f"Please enter a valid {settings.OTP_LENGTH}-digit OTP", code="invalid_otp_format"
        )

    get_authorized_nominees(db, email)

    challenge = consume_otp(db, email, code, now)
    if challenge is None:
        raise VerificationError("Invalid or expired OTP", code="invalid_otp", status_code=401)

    token = create_portal_token(email, challenge.id)
    documents = list_portal_documents(db, email)
    logger.info(
        "Emergency portal session opened (%s documents)",
        len(documents),
        extra=build_log_context(route="emergency.otp.verify"),
    )
    return PortalAuthorization(
        token=token,
        expires_in=settings.PORTAL_SESSION_MINUTES * 60,
        nominee_email=email,
        documents=documents,
    )


def assert_session_challenge(db: Session, email: str, challenge_id: UUID) -> None:
    """Portal tokens are only honoured for a challenge that was actually consumed by this email."""
    challenge = db.get(OtpChallenge, challenge_id)
    if (
        challenge is None
        or challenge.verified_at is None
        or challenge.nominee_email != normalize_email(email)
    ):
        raise VerificationError("Invalid portal session", code="invalid_session", status_code=401)


# =============================================================================
# Authorized
# =============================================================================

def list_portal_documents(db: Session, email: str) -> list[PortalDocument]:
    """
    Documents directly granted to the nominee, across every owner with access live.

    Only document-level grants are listed; deleted documents are excluded.
    """
    nominees = get_authorized_nominees(db, email)
    documents: dict[UUID, PortalDocument] = {}

    for nominee in nominees:
        grants = db.query(AccessGrant).filter(
            AccessGrant.owner_id == nominee.owner_id,
            AccessGrant.nominee_id == nominee.id,
            AccessGrant.resource_type == ResourceType.DOCUMENT.value,
        ).all()
        levels = {grant.resource_id: grant.access_level for grant in grants}
        if not levels:
            continue

        rows = db.query(Document).filter(
            Document.id.in_(list(levels)),
            Document.owner_id == nominee.owner_id,
            Document.deleted_at.is_(None),
        ).order_by(Document.file_name.asc()).all()

        for doc in rows:
            level = levels[doc.id]
            documents.setdefault(
                doc.id,
                PortalDocument(
                    id=doc.id,
                    owner_id=doc.owner_id,
                    file_name=doc.file_name,
                    file_type=doc.file_type,
                    file_size=doc.file_size,
                    category_id=doc.category_id,
                    subcategory_id=doc.subcategory_id,
                    uploaded_at=ensure_utc(doc.uploaded_at),
                    access_level=level,
                    can_download=can_download(level),
                    file_path=doc.file_path,
                ),
            )

    return list(documents.values())


def get_document_url(
    db: Session,
    email: str,
    document_id: UUID,
    action: AccessLevel = AccessLevel.VIEW,
) -> SignedDocumentUrl:
    """
    Derive a fresh signed URL for a listed document.

    View is allowed for any listed document; download needs can_download.
    """
    document = next(
        (d for d in list_portal_documents(db, email) if d.id == document_id),
        None,
    )
    if document is None:
        raise VerificationError("Document not found", code="document_not_found", status_code=404)

    if action == AccessLevel.DOWNLOAD and not document.can_download:
        raise VerificationError(
            "You don't have download permission for this document",
            code="download_not_permitted",
            status_code=403,
        )

    ttl = settings.SIGNED_URL_TTL_SECONDS
    return SignedDocumentUrl(
        document_id=document.id,
        file_name=document.file_name,
        url=create_signed_url(document.file_path, ttl),
        expires_in=ttl,
    )
