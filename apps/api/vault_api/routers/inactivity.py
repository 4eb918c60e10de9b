"""Inactivity router - owner settings, activity heartbeat and alert history."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from vault_api.core.deps import get_current_user, get_db
from vault_api.db.models import InactivityTrigger, User
from vault_api.schemas.inactivity import AlertRead, TriggerRead, TriggerUpdate
from vault_api.services import inactivity_service

router = APIRouter(prefix="/inactivity", tags=["inactivity"])


def _to_trigger_read(trigger: InactivityTrigger) -> TriggerRead:
    read = TriggerRead.model_validate(trigger)
    read.days_inactive = inactivity_service.days_since_activity(trigger)
    return read


@router.get("/trigger", response_model=TriggerRead)
def get_trigger(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trigger = inactivity_service.get_trigger(db, user.id)
    if not trigger:
        raise HTTPException(status_code=404, detail="Inactivity trigger not configured")
    return _to_trigger_read(trigger)


@router.put("/trigger", response_model=TriggerRead)
def update_trigger(
    data: TriggerUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create or partially update the owner's trigger settings."""
    trigger = inactivity_service.upsert_trigger_settings(
        db,
        user.id,
        is_active=data.is_active,
        threshold_days=data.threshold_days,
        custom_message=data.custom_message,
        email_enabled=data.email_enabled,
        sms_enabled=data.sms_enabled,
        clear_custom_message="custom_message" in data.model_fields_set and data.custom_message is None,
    )
    return _to_trigger_read(trigger)


@router.post("/activity", response_model=TriggerRead)
def record_activity(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Heartbeat from the client on significant owner actions."""
    return _to_trigger_read(inactivity_service.record_activity(db, user.id))


@router.post("/emergency-access/revoke", response_model=TriggerRead)
def revoke_emergency_access(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _to_trigger_read(inactivity_service.revoke_emergency_access(db, user.id))


@router.get("/alerts", response_model=list[AlertRead])
def list_alerts(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return inactivity_service.list_alerts(db, user.id, limit=limit, offset=offset)
