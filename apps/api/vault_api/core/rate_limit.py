"""Rate limiting configuration for the vault API."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from vault_api.core.config import settings

# Configure rate limiter with Redis for multi-worker support
# Falls back to in-memory if Redis is not available (dev/test mode)
REDIS_URL = os.getenv("REDIS_URL", "")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)


def portal_limit() -> str:
    """Per-IP limit for OTP request/verify endpoints."""
    if IS_TESTING or settings.RATE_LIMIT_PORTAL <= 0:
        return "10000/minute"
    return f"{settings.RATE_LIMIT_PORTAL}/minute"


if IS_TESTING or not REDIS_URL:
    limiter = Limiter(
        key_func=get_remote_address,
        storage_uri="memory://",
        default_limits=DEFAULT_LIMITS,
    )
else:
    limiter = Limiter(
        key_func=get_remote_address,
        storage_uri=REDIS_URL,
        default_limits=DEFAULT_LIMITS,
        in_memory_fallback_enabled=True,
    )
    logging.getLogger(__name__).info("Rate limiting backed by Redis")
