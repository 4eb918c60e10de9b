"""
Notification dispatcher for inactivity escalation.

Composes stage-specific emails, hands them to the email gateway one
recipient at a time and appends one AlertRecord per recipient whether or
not delivery succeeded. A push summary to the owner is best-effort.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from vault_api.core.config import settings
from vault_api.core.structured_logging import build_log_context
from vault_api.db.enums import AlertStage, RecipientType
from vault_api.db.models import AlertRecord, Nominee, User
from vault_api.services.email_gateway import EmailGateway
from vault_api.services.push_service import PushGateway, PushResult
from vault_api.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_CUSTOM_MESSAGE = "We haven't seen you in a while. Please log in to keep your account active."
SIGNATURE = "<p>Best regards,<br>Family Vault Team</p>"


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str | None
    recipient_type: RecipientType
    nominee_id: UUID | None = None

    @classmethod
    def for_owner(cls, owner: User) -> "Recipient":
        return cls(email=owner.email, name=owner.full_name, recipient_type=RecipientType.USER)

    @classmethod
    def for_nominee(cls, nominee: Nominee) -> "Recipient":
        return cls(
            email=nominee.email,
            name=nominee.full_name,
            recipient_type=RecipientType.NOMINEE,
            nominee_id=nominee.id,
        )


@dataclass(frozen=True)
class ComposedMessage:
    subject: str
    html: str


@dataclass(frozen=True)
class DeliverySent:
    recipient: Recipient
    message_id: str | None = None


@dataclass(frozen=True)
class DeliveryFailed:
    recipient: Recipient
    reason: str


DeliveryOutcome = DeliverySent | DeliveryFailed


@dataclass
class DispatchResult:
    stage: AlertStage
    alerts: list[AlertRecord] = field(default_factory=list)
    outcomes: list[DeliveryOutcome] = field(default_factory=list)
    push: PushResult | None = None
    push_error: str | None = None

    @property
    def sent_count(self) -> int:
        return sum(1 for o in self.outcomes if isinstance(o, DeliverySent))

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if isinstance(o, DeliveryFailed))


# =============================================================================
# Templates
# =============================================================================

def _owner_label(owner: User) -> str:
    return owner.full_name or owner.email


def compose_message(
    stage: AlertStage,
    owner: User,
    recipient: Recipient,
    inactive_days: int,
    threshold_days: int,
    custom_message: str | None = None,
) -> ComposedMessage:
    """Build subject and HTML body for one recipient. All interpolated text is escaped."""
    owner_label = html.escape(_owner_label(owner))
    recipient_name = html.escape(recipient.name or "there")

    if stage == AlertStage.USER_WARNING:
        message = html.escape(custom_message or DEFAULT_CUSTOM_MESSAGE)
        return ComposedMessage(
            subject=f"Inactivity Alert: {inactive_days} days",
            html=(
                f"<h1>Hello {recipient_name},</h1>"
                f"<p>You have been inactive for <strong>{inactive_days} days</strong>.</p>"
                f"<p>{message}</p>"
                f"<p>If you remain inactive for {threshold_days} days, "
                "your emergency contacts will be notified.</p>"
                f"{SIGNATURE}"
            ),
        )

    if stage == AlertStage.NOMINEE_WARNING:
        return ComposedMessage(
            subject=f"Inactivity Alert: {_owner_label(owner)}",
            html=(
                f"<h1>Hello {recipient_name},</h1>"
                f"<p><strong>{owner_label}</strong> has been inactive on Family Vault for "
                f"<strong>{inactive_days} days</strong>.</p>"
                f"<p>If they remain inactive for {threshold_days} days total, you will be granted "
                "emergency access to their shared documents.</p>"
                "<p>This is an automated alert from Family Vault's emergency access system.</p>"
                f"{SIGNATURE}"
            ),
        )

    if stage == AlertStage.EMERGENCY_GRANTED:
        return ComposedMessage(
            subject=f"Emergency Access Granted: {_owner_label(owner)}",
            html=(
                "<h1>Emergency Access Granted</h1>"
                f"<p>Dear {recipient_name},</p>"
                f"<p><strong>{owner_label}</strong> has been inactive for "
                f"<strong>{inactive_days} days</strong>.</p>"
                "<p>You have now been granted emergency access to their shared documents.</p>"
                "<p>To access the documents, visit the Family Vault emergency access portal "
                "and verify your identity with your email.</p>"
                "<p><strong>This access is granted due to prolonged inactivity and is part of "
                "the user's emergency preparedness plan.</strong></p>"
                f"{SIGNATURE}"
            ),
        )

    raise ValueError(f"Unknown alert stage: {stage}")


def compose_push(stage: AlertStage, inactive_days: int) -> tuple[str, str]:
    """Short owner-facing push summary for a stage."""
    if stage == AlertStage.USER_WARNING:
        return (
            "Inactivity Alert",
            f"You've been inactive for {inactive_days} days. Log in to keep your account active.",
        )
    if stage == AlertStage.NOMINEE_WARNING:
        return (
            "Nominees Notified",
            f"Your nominees have been notified about your {inactive_days} days of inactivity.",
        )
    return (
        "Emergency Access Granted",
        "Emergency access has been granted to your nominees due to prolonged inactivity.",
    )


# =============================================================================
# Dispatch
# =============================================================================

async def dispatch(
    db: Session,
    stage: AlertStage,
    owner: User,
    recipients: list[Recipient],
    inactive_days: int,
    custom_message: str | None,
    *,
    threshold_days: int,
    email_gateway: EmailGateway,
    push_gateway: PushGateway | None = None,
    now: datetime | None = None,
    run_id: str | None = None,
) -> DispatchResult:
    """
    Notify every recipient for one stage and record one AlertRecord each.

    Gateway failures are collected as DeliveryFailed outcomes and never
    raised. Alert rows are committed before returning.
    """
    sent_at = now or utcnow()
    result = DispatchResult(stage=stage)
    log_context = build_log_context(owner_id=owner.id, stage=stage.value, run_id=run_id)

    if not recipients:
        logger.info("No recipients for stage", extra=log_context)
        return result

    for recipient in recipients:
        message = compose_message(
            stage, owner, recipient, inactive_days, threshold_days, custom_message
        )
        try:
            receipt = await email_gateway.send(
                from_email=settings.EMAIL_FROM,
                to=[recipient.email],
                subject=message.subject,
                html=message.html,
            )
            outcome: DeliveryOutcome = DeliverySent(recipient=recipient, message_id=receipt.message_id)
        except Exception as exc:
            logger.warning(
                "Alert email delivery failed: %s",
                type(exc).__name__,
                extra={**log_context, "nominee_id": str(recipient.nominee_id or "")},
            )
            outcome = DeliveryFailed(recipient=recipient, reason=str(exc) or type(exc).__name__)

        result.outcomes.append(outcome)
        alert = AlertRecord(
            owner_id=owner.id,
            stage=stage.value,
            inactive_days=inactive_days,
            recipient_type=recipient.recipient_type.value,
            recipient_email=recipient.email,
            custom_message=custom_message,
            delivered=isinstance(outcome, DeliverySent),
            error=outcome.reason if isinstance(outcome, DeliveryFailed) else None,
            sent_at=sent_at,
        )
        db.add(alert)
        result.alerts.append(alert)

    db.commit()

    if owner.push_notifications_enabled and push_gateway is not None:
        title, body = compose_push(stage, inactive_days)
        try:
            result.push = await push_gateway.send_push(
                owner.id, title, body, {"type": "inactivity", "stage": stage.value}
            )
        except Exception as exc:
            logger.warning("Owner push failed: %s", type(exc).__name__, extra=log_context)
            result.push_error = str(exc) or type(exc).__name__

    logger.info(
        "Stage dispatched: %s sent, %s failed",
        result.sent_count,
        result.failed_count,
        extra=log_context,
    )
    return result
