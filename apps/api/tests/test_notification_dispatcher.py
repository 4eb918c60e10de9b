"""Tests for alert composition and per-recipient dispatch."""

import pytest

from vault_api.db.enums import AlertStage, RecipientType
from vault_api.db.models import AlertRecord
from vault_api.services import notification_dispatcher
from vault_api.services.notification_dispatcher import (
    DeliveryFailed,
    DeliverySent,
    Recipient,
    compose_message,
    compose_push,
)

from conftest import NOW


async def _dispatch(db, stage, owner, recipients, email_gateway, push_gateway=None, custom_message=None):
    return await notification_dispatcher.dispatch(
        db,
        stage,
        owner,
        recipients,
        5,
        custom_message,
        threshold_days=7,
        email_gateway=email_gateway,
        push_gateway=push_gateway,
        now=NOW,
    )


def test_user_warning_uses_custom_message(make_owner):
    owner = make_owner(full_name="Olivia")
    message = compose_message(
        AlertStage.USER_WARNING, owner, Recipient.for_owner(owner), 2, 7, "Call your sister"
    )

    assert message.subject == "Inactivity Alert: 2 days"
    assert "Call your sister" in message.html
    assert "7 days" in message.html


def test_user_warning_falls_back_to_default_message(owner):
    message = compose_message(AlertStage.USER_WARNING, owner, Recipient.for_owner(owner), 1, 7)
    assert notification_dispatcher.DEFAULT_CUSTOM_MESSAGE.replace("'", "&#x27;") in message.html


def test_templates_escape_interpolated_text(make_owner, make_nominee):
    owner = make_owner(full_name="<script>alert(1)</script>")
    nominee = make_nominee(owner, full_name="Bob & <b>Co</b>")

    message = compose_message(
        AlertStage.NOMINEE_WARNING, owner, Recipient.for_nominee(nominee), 5, 7
    )

    assert "<script>" not in message.html
    assert "&lt;script&gt;" in message.html
    assert "Bob &amp; &lt;b&gt;Co&lt;/b&gt;" in message.html


def test_emergency_subject_names_owner(make_owner, make_nominee):
    owner = make_owner(full_name="Olivia Owner")
    nominee = make_nominee(owner)

    message = compose_message(
        AlertStage.EMERGENCY_GRANTED, owner, Recipient.for_nominee(nominee), 9, 7
    )

    assert message.subject == "Emergency Access Granted: Olivia Owner"


def test_owner_label_falls_back_to_email(make_owner, make_nominee):
    owner = make_owner(full_name=None)
    nominee = make_nominee(owner)

    message = compose_message(
        AlertStage.NOMINEE_WARNING, owner, Recipient.for_nominee(nominee), 4, 7
    )

    assert message.subject == f"Inactivity Alert: {owner.email}"


def test_push_copy_per_stage():
    assert compose_push(AlertStage.USER_WARNING, 2)[0] == "Inactivity Alert"
    assert compose_push(AlertStage.NOMINEE_WARNING, 5)[0] == "Nominees Notified"
    assert compose_push(AlertStage.EMERGENCY_GRANTED, 8)[0] == "Emergency Access Granted"


@pytest.mark.asyncio
async def test_one_alert_per_recipient_including_failures(db, owner, make_nominee, email_gateway):
    nominees = [make_nominee(owner) for _ in range(3)]
    email_gateway.fail_for = {nominees[1].email}

    result = await _dispatch(
        db,
        AlertStage.NOMINEE_WARNING,
        owner,
        [Recipient.for_nominee(n) for n in nominees],
        email_gateway,
    )

    assert result.sent_count == 2
    assert result.failed_count == 1
    assert isinstance(result.outcomes[0], DeliverySent)
    assert isinstance(result.outcomes[1], DeliveryFailed)

    alerts = db.query(AlertRecord).all()
    assert len(alerts) == 3
    assert {a.recipient_type for a in alerts} == {RecipientType.NOMINEE.value}
    failed = [a for a in alerts if not a.delivered]
    assert [a.recipient_email for a in failed] == [nominees[1].email]
    assert failed[0].error


@pytest.mark.asyncio
async def test_alert_keeps_custom_message_snapshot(db, owner, email_gateway):
    await _dispatch(
        db,
        AlertStage.USER_WARNING,
        owner,
        [Recipient.for_owner(owner)],
        email_gateway,
        custom_message="Back soon",
    )

    alert = db.query(AlertRecord).one()
    assert alert.custom_message == "Back soon"
    assert alert.inactive_days == 5


@pytest.mark.asyncio
async def test_no_recipients_means_no_alerts_and_no_push(db, make_owner, email_gateway, push_gateway):
    owner = make_owner(push=True)

    result = await _dispatch(db, AlertStage.NOMINEE_WARNING, owner, [], email_gateway, push_gateway)

    assert result.alerts == []
    assert push_gateway.calls == []
    assert db.query(AlertRecord).count() == 0


@pytest.mark.asyncio
async def test_push_only_when_owner_opted_in(db, make_owner, email_gateway, push_gateway):
    opted_out = make_owner(push=False)
    opted_in = make_owner(push=True)

    await _dispatch(db, AlertStage.USER_WARNING, opted_out, [Recipient.for_owner(opted_out)], email_gateway, push_gateway)
    assert push_gateway.calls == []

    result = await _dispatch(db, AlertStage.USER_WARNING, opted_in, [Recipient.for_owner(opted_in)], email_gateway, push_gateway)
    assert len(push_gateway.calls) == 1
    assert push_gateway.calls[0]["user_id"] == opted_in.id
    assert push_gateway.calls[0]["data"]["stage"] == AlertStage.USER_WARNING.value
    assert result.push.sent == 1


@pytest.mark.asyncio
async def test_push_failure_does_not_fail_dispatch(db, make_owner, email_gateway, push_gateway):
    owner = make_owner(push=True)
    push_gateway.fail = True

    result = await _dispatch(db, AlertStage.USER_WARNING, owner, [Recipient.for_owner(owner)], email_gateway, push_gateway)

    assert result.push is None
    assert result.push_error == "FCM unavailable"
    assert result.sent_count == 1
    assert db.query(AlertRecord).count() == 1
