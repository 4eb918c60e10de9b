"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from vault_api.services import (
    access_control_service,
    emergency_portal_service,
    inactivity_service,
    notification_dispatcher,
    push_service,
    storage_service,
)

__all__ = [
    "access_control_service",
    "emergency_portal_service",
    "inactivity_service",
    "notification_dispatcher",
    "push_service",
    "storage_service",
]
