"""API routers."""

from vault_api.routers.access import router as access_router
from vault_api.routers.inactivity import router as inactivity_router
from vault_api.routers.internal import router as internal_router
from vault_api.routers.portal import router as portal_router
from vault_api.routers.push import router as push_router

__all__ = [
    "access_router",
    "inactivity_router",
    "internal_router",
    "portal_router",
    "push_router",
]
