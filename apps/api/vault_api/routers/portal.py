"""
Emergency portal router (public).

Nominees verify with email + one-time code, then list and open the
documents shared with them. Request/verify are rate limited per IP.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from vault_api.core.deps import PortalSession, get_db, get_portal_session
from vault_api.core.errors import ConfigurationError, EmailDeliveryError
from vault_api.core.rate_limit import limiter, portal_limit
from vault_api.db.enums import AccessLevel
from vault_api.schemas.portal import (
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
    PortalDocumentList,
    PortalDocumentRead,
    SignedUrlResponse,
)
from vault_api.services import emergency_portal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/emergency", tags=["emergency-portal"])


@router.post("/otp/request", response_model=OtpRequestResponse)
@limiter.limit(portal_limit)
async def request_otp(
    data: OtpRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Check eligibility and email a one-time code."""
    try:
        result = await emergency_portal_service.request_otp(db, data.email)
    except EmailDeliveryError:
        logger.warning("Emergency OTP email failed", exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to send OTP. Please try again.")
    return OtpRequestResponse(expires_at=result.expires_at)


@router.post("/otp/verify", response_model=OtpVerifyResponse)
@limiter.limit(portal_limit)
def verify_otp(
    data: OtpVerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Consume a code and open a short-lived portal session."""
    auth = emergency_portal_service.verify_otp(db, data.email, data.code)
    return OtpVerifyResponse(
        token=auth.token,
        expires_in=auth.expires_in,
        documents=[PortalDocumentRead.model_validate(d) for d in auth.documents],
    )


def _require_session(
    session: PortalSession = Depends(get_portal_session),
    db: Session = Depends(get_db),
) -> PortalSession:
    emergency_portal_service.assert_session_challenge(db, session.nominee_email, session.challenge_id)
    return session


@router.get("/documents", response_model=PortalDocumentList)
def list_documents(
    session: PortalSession = Depends(_require_session),
    db: Session = Depends(get_db),
):
    documents = emergency_portal_service.list_portal_documents(db, session.nominee_email)
    return PortalDocumentList(documents=[PortalDocumentRead.model_validate(d) for d in documents])


def _signed_url(db: Session, session: PortalSession, document_id: UUID, action: AccessLevel):
    try:
        return emergency_portal_service.get_document_url(
            db, session.nominee_email, document_id, action
        )
    except ConfigurationError as exc:
        logger.warning("Document storage unavailable: %s", exc)
        raise HTTPException(
            status_code=503, detail="Document storage is unavailable. Please try again."
        )


@router.get("/documents/{document_id}/view", response_model=SignedUrlResponse)
def view_document(
    document_id: UUID,
    session: PortalSession = Depends(_require_session),
    db: Session = Depends(get_db),
):
    return _signed_url(db, session, document_id, AccessLevel.VIEW)


@router.get("/documents/{document_id}/download", response_model=SignedUrlResponse)
def download_document(
    document_id: UUID,
    session: PortalSession = Depends(_require_session),
    db: Session = Depends(get_db),
):
    return _signed_url(db, session, document_id, AccessLevel.DOWNLOAD)
