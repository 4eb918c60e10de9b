"""FastAPI dependencies for authentication, authorization, and database access."""

from dataclasses import dataclass
from typing import Generator
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from vault_api.core.config import settings
from vault_api.core.security import decode_portal_token, decode_session_token, verify_service_secret
from vault_api.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "vault_session"
INTERNAL_SECRET_HEADER = "X-Internal-Secret"
PORTAL_TOKEN_HEADER = "X-Portal-Token"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Get authenticated owner from session cookie or bearer token.

    Validates:
    - Token exists, is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    from vault_api.db.models import User

    token = request.cookies.get(COOKIE_NAME) or _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return user


def verify_internal_secret(x_internal_secret: str = Header(...)) -> None:
    """Verify the internal secret header used by the external scheduler."""
    if not settings.INTERNAL_SECRET:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if not verify_service_secret(x_internal_secret):
        raise HTTPException(status_code=403, detail="Invalid internal secret")


@dataclass(frozen=True)
class PushCaller:
    """Who is calling the push endpoint: the service itself or one owner."""
    is_service: bool
    user_id: UUID | None = None

    def may_target(self, user_id: UUID) -> bool:
        return self.is_service or self.user_id == user_id


def get_push_caller(request: Request, db: Session = Depends(get_db)) -> PushCaller:
    """
    Accept either the service credential or an owner session.

    Service credential may be sent as `Authorization: Bearer <secret>` or the
    internal secret header. Anything else is a 401.
    """
    bearer = _bearer_token(request)
    if verify_service_secret(bearer) or verify_service_secret(request.headers.get(INTERNAL_SECRET_HEADER)):
        return PushCaller(is_service=True)

    user = get_current_user(request, db)
    return PushCaller(is_service=False, user_id=user.id)


@dataclass(frozen=True)
class PortalSession:
    nominee_email: str
    challenge_id: UUID


def get_portal_session(request: Request) -> PortalSession:
    """
    Resolve the emergency portal token (bearer or X-Portal-Token header).

    Raises:
        HTTPException 401: Missing, expired or foreign token
    """
    token = request.headers.get(PORTAL_TOKEN_HEADER) or _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Portal session required")
    try:
        payload = decode_portal_token(token)
        return PortalSession(
            nominee_email=str(payload["sub"]),
            challenge_id=UUID(str(payload["challenge_id"])),
        )
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid or expired portal session")
