"""Pydantic schemas for API request/response models."""

from vault_api.schemas.access import (
    AccessGrantRead,
    AccessSummaryRead,
    BulkAccessRequest,
    GrantRequest,
    RevokeRequest,
    ToggleRequest,
)
from vault_api.schemas.inactivity import AlertRead, InactivityCheckResponse, TriggerRead, TriggerUpdate
from vault_api.schemas.portal import (
    OtpRequest,
    OtpVerifyRequest,
    OtpVerifyResponse,
    PortalDocumentRead,
    SignedUrlResponse,
)
from vault_api.schemas.push import PushSendRequest, PushSendResponse

__all__ = [
    "AccessGrantRead",
    "AccessSummaryRead",
    "AlertRead",
    "BulkAccessRequest",
    "GrantRequest",
    "InactivityCheckResponse",
    "OtpRequest",
    "OtpVerifyRequest",
    "OtpVerifyResponse",
    "PortalDocumentRead",
    "PushSendRequest",
    "PushSendResponse",
    "RevokeRequest",
    "SignedUrlResponse",
    "ToggleRequest",
    "TriggerRead",
    "TriggerUpdate",
]
