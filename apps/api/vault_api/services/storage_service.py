"""Document storage collaborator: short-lived signed retrieval URLs."""

from __future__ import annotations

import logging
from urllib.parse import quote

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from vault_api.core.config import settings
from vault_api.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/storage/local"


def get_s3_client() -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    endpoint_url = settings.S3_ENDPOINT_URL.rstrip("/") if settings.S3_ENDPOINT_URL else None
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=endpoint_url,
    )


def create_signed_url(path: str, ttl_seconds: int | None = None) -> str:
    """
    Create a retrieval URL for a stored object.

    Never cached or persisted: callers derive a fresh URL per view/download.

    Raises:
        ConfigurationError: storage backend cannot sign the URL
    """
    ttl = ttl_seconds or settings.SIGNED_URL_TTL_SECONDS
    backend = (settings.STORAGE_BACKEND or "local").lower()

    if backend == "s3":
        try:
            return get_s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": settings.S3_BUCKET, "Key": path},
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to sign storage URL", exc_info=exc)
            raise ConfigurationError("Document storage unavailable") from exc

    if backend == "local":
        return f"{LOCAL_URL_PREFIX}/{quote(path)}?expires_in={ttl}"

    raise ConfigurationError(f"Unknown storage backend '{backend}'")
