"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from an external cron (Render/Railway/GH Actions) every few minutes.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from vault_api.core.deps import verify_internal_secret
from vault_api.db.session import SessionLocal
from vault_api.schemas.inactivity import InactivityCheckResponse
from vault_api.services import inactivity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


@router.post(
    "/inactivity-check",
    response_model=InactivityCheckResponse,
    dependencies=[Depends(verify_internal_secret)],
)
async def run_inactivity_check():
    """
    Run one inactivity monitor pass over all active triggers.

    Per-owner failures are logged and skipped. Only a failure to load the
    trigger list answers 500 so the scheduler can alert/retry.
    """
    try:
        with SessionLocal() as db:
            result = await inactivity_service.run_inactivity_check(
                db, session_factory=SessionLocal
            )
    except Exception as exc:
        logger.exception("Inactivity check failed")
        return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})

    return result.to_response()
