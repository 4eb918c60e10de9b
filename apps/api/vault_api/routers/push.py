"""Push notification router - service or owner initiated sends, device registration."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from vault_api.core.deps import PushCaller, get_current_user, get_db, get_push_caller
from vault_api.core.errors import PushDeliveryError
from vault_api.core.rate_limit import limiter
from vault_api.db.models import User
from vault_api.schemas.push import DeviceTokenRead, DeviceTokenRegister, PushSendRequest, PushSendResponse
from vault_api.services import push_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/push", response_model=PushSendResponse)
@limiter.limit("30/minute")
async def send_push(
    data: PushSendRequest,
    request: Request,
    caller: PushCaller = Depends(get_push_caller),
    db: Session = Depends(get_db),
):
    """
    Push to every device of one owner.

    The service credential may target anyone; an owner session only itself.
    """
    if not caller.may_target(data.user_id):
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        result = await push_service.send_push_to_user(db, data.user_id, data.title, data.body, data.data)
    except PushDeliveryError as exc:
        logger.warning("Push gateway unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc))

    response = PushSendResponse(**result.to_dict())
    if result.total == 0:
        response.message = "No devices registered"
    return response


@router.post("/devices", response_model=DeviceTokenRead, status_code=201)
def register_device(
    data: DeviceTokenRegister,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return push_service.register_device_token(
        db, user.id, data.token, data.platform.value, data.device_name
    )


@router.delete("/devices/{device_id}", status_code=204)
def remove_device(
    device_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not push_service.remove_device_token(db, user.id, device_id):
        raise HTTPException(status_code=404, detail="Device not found")
