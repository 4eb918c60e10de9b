"""Security utilities for session tokens, portal tokens, one-time codes and service credentials."""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from vault_api.core.config import settings

PORTAL_TOKEN_SCOPE = "emergency_portal"


# =============================================================================
# Owner Session Token (JWT in cookie or bearer header)
# =============================================================================

def create_session_token(user_id: UUID, token_version: int) -> str:
    """
    Create signed owner session JWT.

    Always signs with current secret (JWT_SECRET).
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "token_version": token_version,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify a JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Emergency Portal Token
# =============================================================================

def create_portal_token(nominee_email: str, challenge_id: UUID) -> str:
    """Short-lived token proving a nominee consumed a one-time code."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": nominee_email,
        "challenge_id": str(challenge_id),
        "scope": PORTAL_TOKEN_SCOPE,
        "iat": now,
        "exp": now + timedelta(minutes=settings.PORTAL_SESSION_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_portal_token(token: str) -> dict:
    """
    Decode a portal token and check its scope.

    Raises:
        jwt.InvalidTokenError: If token is invalid, expired or not a portal token
    """
    payload = decode_session_token(token)
    if payload.get("scope") != PORTAL_TOKEN_SCOPE:
        raise jwt.InvalidTokenError("Not an emergency portal token")
    return payload


# =============================================================================
# One-Time Codes
# =============================================================================

def generate_otp_code(length: int | None = None) -> str:
    """Generate a zero-padded numeric code."""
    digits = length or settings.OTP_LENGTH
    return f"{secrets.randbelow(10 ** digits):0{digits}d}"


def normalize_otp_code(code: str) -> str:
    return code.strip().replace(" ", "").replace("-", "")


def hash_otp_code(email: str, code: str) -> str:
    """HMAC-SHA256 of email+code; the plaintext code is never stored."""
    message = f"{email.strip().lower()}:{normalize_otp_code(code)}".encode()
    return hmac.new(settings.otp_hash_key, message, hashlib.sha256).hexdigest()


# =============================================================================
# Service Credential
# =============================================================================

def verify_service_secret(candidate: str | None) -> bool:
    """Constant-time comparison against INTERNAL_SECRET. Empty config never matches."""
    expected = settings.INTERNAL_SECRET
    if not expected or not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), expected.encode())
