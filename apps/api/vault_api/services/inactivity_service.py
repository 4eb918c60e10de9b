"""
Inactivity monitor and trigger settings.

The monitor is run by an external scheduler. For every active trigger it
computes whole days since the owner's last activity and walks the
escalation table:

    days 1-3 (email enabled)        -> user_warning to the owner
    days 4-6                        -> nominee_warning to verified nominees
    days >= threshold, not granted  -> emergency_granted, then flip the flag

Stages are independent; more than one can fire in a single run. One owner
failing never stops the batch.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from vault_api.core.config import settings
from vault_api.core.errors import DataIntegrityError, VerificationError
from vault_api.core.structured_logging import build_log_context
from vault_api.db.enums import NOMINEE_WARNING_DAYS, USER_WARNING_DAYS, AlertStage, NomineeStatus
from vault_api.db.models import AlertRecord, InactivityTrigger, Nominee, User
from vault_api.services import notification_dispatcher
from vault_api.services.email_gateway import EmailGateway, get_email_gateway
from vault_api.services.notification_dispatcher import Recipient
from vault_api.services.push_service import PushGateway, get_push_gateway
from vault_api.utils.datetime_utils import ensure_utc, utcnow, whole_days_between

logger = logging.getLogger(__name__)

WINDOW_STAGES = (AlertStage.USER_WARNING, AlertStage.NOMINEE_WARNING)


@dataclass
class OwnerOutcome:
    owner_id: UUID
    inactive_days: int | None = None
    stages: list[str] = field(default_factory=list)
    skipped_reason: str | None = None
    error: str | None = None

    @property
    def touched(self) -> bool:
        return bool(self.stages)


@dataclass
class InactivityRunResult:
    run_id: str
    outcomes: list[OwnerOutcome] = field(default_factory=list)

    @property
    def processed_users(self) -> list[UUID]:
        """Distinct owners with at least one stage fired, in trigger order."""
        seen: dict[UUID, None] = {}
        for outcome in self.outcomes:
            if outcome.touched:
                seen.setdefault(outcome.owner_id, None)
        return list(seen)

    @property
    def failed_users(self) -> list[UUID]:
        return [o.owner_id for o in self.outcomes if o.error]

    def to_response(self) -> dict:
        user_ids = [str(owner_id) for owner_id in self.processed_users]
        return {"success": True, "processedUsers": len(user_ids), "userIds": user_ids}


# =============================================================================
# Stage evaluation
# =============================================================================

def days_since_activity(trigger: InactivityTrigger | None, now: datetime | None = None) -> int:
    """Whole days since last activity; 0 when unknown or in the future."""
    if trigger is None or trigger.last_activity_at is None:
        return 0
    return max(0, whole_days_between(trigger.last_activity_at, now or utcnow()))


def _in_window(inactive_days: int, window: tuple[int, int]) -> bool:
    low, high = window
    return low <= inactive_days <= high


def evaluate_stages(
    trigger: InactivityTrigger,
    inactive_days: int,
    already_sent: set[str] | frozenset[str] = frozenset(),
) -> list[AlertStage]:
    """
    Ordered stages due for a trigger.

    already_sent holds window stages recorded for the current inactivity
    episode; they are not due again.
    """
    stages: list[AlertStage] = []

    if (
        _in_window(inactive_days, USER_WARNING_DAYS)
        and trigger.email_enabled
        and AlertStage.USER_WARNING.value not in already_sent
    ):
        stages.append(AlertStage.USER_WARNING)

    if (
        _in_window(inactive_days, NOMINEE_WARNING_DAYS)
        and AlertStage.NOMINEE_WARNING.value not in already_sent
    ):
        stages.append(AlertStage.NOMINEE_WARNING)

    if inactive_days >= trigger.threshold_days and not trigger.emergency_access_granted:
        stages.append(AlertStage.EMERGENCY_GRANTED)

    return stages


def sent_window_stages(db: Session, trigger: InactivityTrigger) -> set[str]:
    """Window stages already alerted since the owner's last activity."""
    if settings.INACTIVITY_REPEAT_WINDOW_ALERTS or trigger.last_activity_at is None:
        return set()
    rows = db.query(AlertRecord.stage).filter(
        AlertRecord.owner_id == trigger.owner_id,
        AlertRecord.stage.in_([stage.value for stage in WINDOW_STAGES]),
        AlertRecord.sent_at >= trigger.last_activity_at,
    ).distinct().all()
    return {row[0] for row in rows}


def get_verified_nominees(db: Session, owner_id: UUID) -> list[Nominee]:
    return db.query(Nominee).filter(
        Nominee.owner_id == owner_id,
        Nominee.status == NomineeStatus.VERIFIED.value,
        Nominee.deleted_at.is_(None),
    ).order_by(Nominee.created_at.asc()).all()


# =============================================================================
# Monitor
# =============================================================================

async def process_trigger(
    db: Session,
    trigger: InactivityTrigger,
    now: datetime,
    email_gateway: EmailGateway,
    push_gateway: PushGateway | None = None,
    run_id: str | None = None,
) -> OwnerOutcome:
    """
    Evaluate and act on one owner's trigger.

    Raises:
        DataIntegrityError: trigger has no owner profile
    """
    outcome = OwnerOutcome(owner_id=trigger.owner_id)
    log_context = build_log_context(owner_id=trigger.owner_id, run_id=run_id)

    if trigger.last_activity_at is None:
        logger.warning("Trigger has no recorded activity, skipping", extra=log_context)
        outcome.skipped_reason = "no_activity_recorded"
        return outcome

    inactive_days = whole_days_between(trigger.last_activity_at, now)
    outcome.inactive_days = inactive_days

    stages = evaluate_stages(trigger, inactive_days, sent_window_stages(db, trigger))
    if not stages:
        return outcome

    owner = db.get(User, trigger.owner_id)
    if owner is None:
        raise DataIntegrityError(f"Trigger {trigger.id} has no owner profile")

    nominees: list[Nominee] | None = None
    grant_due = False

    for stage in stages:
        if stage == AlertStage.USER_WARNING:
            recipients = [Recipient.for_owner(owner)]
        else:
            if nominees is None:
                nominees = get_verified_nominees(db, owner.id)
            recipients = [Recipient.for_nominee(n) for n in nominees]

        dispatched = await notification_dispatcher.dispatch(
            db,
            stage,
            owner,
            recipients,
            inactive_days,
            trigger.custom_message,
            threshold_days=trigger.threshold_days,
            email_gateway=email_gateway,
            push_gateway=push_gateway,
            now=now,
            run_id=run_id,
        )
        if stage == AlertStage.EMERGENCY_GRANTED:
            grant_due = True
        elif not dispatched.outcomes:
            # Nothing recorded, so the stage is due again next run; not a touch
            continue
        outcome.stages.append(stage.value)

    # Flag flip is the last write so access is never live without an attempted notice
    if grant_due:
        trigger.emergency_access_granted = True
        trigger.emergency_granted_at = now
        db.commit()
        logger.info(
            "Emergency access granted",
            extra=build_log_context(
                owner_id=owner.id, stage=AlertStage.EMERGENCY_GRANTED.value, run_id=run_id
            ),
        )

    return outcome


async def _process_safely(
    db: Session,
    trigger: InactivityTrigger,
    now: datetime,
    email_gateway: EmailGateway,
    push_gateway: PushGateway | None,
    run_id: str,
) -> OwnerOutcome:
    owner_id = trigger.owner_id
    try:
        return await process_trigger(db, trigger, now, email_gateway, push_gateway, run_id)
    except Exception as exc:
        db.rollback()
        logger.exception(
            "Inactivity processing failed for owner",
            extra=build_log_context(owner_id=owner_id, run_id=run_id),
        )
        return OwnerOutcome(owner_id=owner_id, error=str(exc) or type(exc).__name__)


async def run_inactivity_check(
    db: Session,
    now: datetime | None = None,
    email_gateway: EmailGateway | None = None,
    push_gateway: PushGateway | None = None,
    session_factory: Callable[[], Session] | None = None,
    max_concurrency: int | None = None,
) -> InactivityRunResult:
    """
    Run one monitor pass over every active trigger.

    Loading the trigger list is the only failure that propagates. With
    max_concurrency > 1 and a session_factory, owners are processed as
    tasks behind a semaphore, each in its own session.
    """
    now = ensure_utc(now) or utcnow()
    result = InactivityRunResult(run_id=uuid.uuid4().hex[:12])
    email_gateway = email_gateway or get_email_gateway()

    triggers = db.query(InactivityTrigger).filter(
        InactivityTrigger.is_active.is_(True),
    ).order_by(InactivityTrigger.created_at.asc(), InactivityTrigger.id.asc()).all()

    logger.info(
        "Inactivity check started for %s active triggers",
        len(triggers),
        extra=build_log_context(run_id=result.run_id),
    )

    concurrency = max_concurrency or settings.INACTIVITY_MAX_CONCURRENCY
    if concurrency <= 1 or session_factory is None:
        gateway = push_gateway if push_gateway is not None else get_push_gateway(db)
        for trigger in triggers:
            result.outcomes.append(
                await _process_safely(db, trigger, now, email_gateway, gateway, result.run_id)
            )
    else:
        semaphore = asyncio.Semaphore(concurrency)
        trigger_owner = {t.id: t.owner_id for t in triggers}

        async def _worker(trigger_id: UUID) -> OwnerOutcome:
            async with semaphore:
                with session_factory() as session:
                    trigger = session.get(InactivityTrigger, trigger_id)
                    if trigger is None:
                        return OwnerOutcome(
                            owner_id=trigger_owner[trigger_id], skipped_reason="trigger_missing"
                        )
                    gateway = push_gateway if push_gateway is not None else get_push_gateway(session)
                    return await _process_safely(
                        session, trigger, now, email_gateway, gateway, result.run_id
                    )

        result.outcomes.extend(await asyncio.gather(*(_worker(t.id) for t in triggers)))

    logger.info(
        "Inactivity check finished: %s owners processed, %s failed",
        len(result.processed_users),
        len(result.failed_users),
        extra=build_log_context(run_id=result.run_id),
    )
    return result


# =============================================================================
# Activity & settings
# =============================================================================

def get_trigger(db: Session, owner_id: UUID) -> InactivityTrigger | None:
    return db.query(InactivityTrigger).filter(InactivityTrigger.owner_id == owner_id).first()


def record_activity(db: Session, owner_id: UUID, now: datetime | None = None) -> InactivityTrigger:
    """Upsert the owner's trigger with a fresh last-activity timestamp."""
    trigger = get_trigger(db, owner_id)
    if trigger is None:
        trigger = InactivityTrigger(owner_id=owner_id)
        db.add(trigger)
    trigger.last_activity_at = ensure_utc(now) or utcnow()
    db.commit()
    db.refresh(trigger)
    return trigger


def upsert_trigger_settings(
    db: Session,
    owner_id: UUID,
    *,
    is_active: bool | None = None,
    threshold_days: int | None = None,
    custom_message: str | None = None,
    email_enabled: bool | None = None,
    sms_enabled: bool | None = None,
    clear_custom_message: bool = False,
) -> InactivityTrigger:
    """Create or update owner settings. Only provided fields change."""
    if threshold_days is not None and threshold_days < 1:
        raise VerificationError(
            "threshold_days must be at least 1", code="invalid_threshold", status_code=422
        )

    trigger = get_trigger(db, owner_id)
    if trigger is None:
        trigger = InactivityTrigger(owner_id=owner_id, last_activity_at=utcnow())
        db.add(trigger)

    if is_active is not None:
        trigger.is_active = is_active
    if threshold_days is not None:
        trigger.threshold_days = threshold_days
    if custom_message is not None:
        trigger.custom_message = custom_message.strip() or None
    elif clear_custom_message:
        trigger.custom_message = None
    if email_enabled is not None:
        trigger.email_enabled = email_enabled
    if sms_enabled is not None:
        trigger.sms_enabled = sms_enabled

    db.commit()
    db.refresh(trigger)
    return trigger


def revoke_emergency_access(db: Session, owner_id: UUID) -> InactivityTrigger:
    """Owner is back: close emergency access and clear its timestamp together."""
    trigger = get_trigger(db, owner_id)
    if trigger is None:
        raise VerificationError("Inactivity trigger not found", code="trigger_not_found", status_code=404)
    trigger.emergency_access_granted = False
    trigger.emergency_granted_at = None
    db.commit()
    db.refresh(trigger)
    logger.info("Emergency access revoked", extra=build_log_context(owner_id=owner_id))
    return trigger


def list_alerts(db: Session, owner_id: UUID, limit: int = 50, offset: int = 0) -> list[AlertRecord]:
    """Owner's alert audit trail, newest first."""
    return db.query(AlertRecord).filter(
        AlertRecord.owner_id == owner_id,
    ).order_by(AlertRecord.sent_at.desc()).offset(offset).limit(limit).all()
