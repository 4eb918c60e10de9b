"""Tests for the inactivity monitor escalation state machine."""

from datetime import timedelta

import pytest

from vault_api.core.config import settings
from vault_api.db.enums import AccessLevel, AlertStage, NomineeStatus, RecipientType, ResourceType
from vault_api.db.models import AlertRecord, InactivityTrigger
from vault_api.services import access_control_service, emergency_portal_service, inactivity_service
from vault_api.services.inactivity_service import evaluate_stages

from conftest import NOW


def _alerts(db, stage: AlertStage | None = None) -> list[AlertRecord]:
    query = db.query(AlertRecord)
    if stage:
        query = query.filter(AlertRecord.stage == stage.value)
    return query.all()


async def _run(db, email_gateway, push_gateway=None, now=NOW):
    return await inactivity_service.run_inactivity_check(
        db, now=now, email_gateway=email_gateway, push_gateway=push_gateway
    )


# =============================================================================
# Stage table
# =============================================================================

@pytest.mark.parametrize(
    "days,expected",
    [
        (0, []),
        (1, [AlertStage.USER_WARNING]),
        (3, [AlertStage.USER_WARNING]),
        (4, [AlertStage.NOMINEE_WARNING]),
        (6, [AlertStage.NOMINEE_WARNING]),
        (7, [AlertStage.EMERGENCY_GRANTED]),
        (30, [AlertStage.EMERGENCY_GRANTED]),
    ],
)
def test_evaluate_stages_default_threshold(days, expected):
    trigger = InactivityTrigger(threshold_days=7, email_enabled=True, emergency_access_granted=False)
    assert evaluate_stages(trigger, days) == expected


def test_evaluate_stages_overlap_with_short_threshold():
    trigger = InactivityTrigger(threshold_days=2, email_enabled=True, emergency_access_granted=False)
    assert evaluate_stages(trigger, 2) == [AlertStage.USER_WARNING, AlertStage.EMERGENCY_GRANTED]


def test_evaluate_stages_respects_email_flag_and_dedupe():
    trigger = InactivityTrigger(threshold_days=7, email_enabled=False, emergency_access_granted=False)
    assert evaluate_stages(trigger, 2) == []

    trigger.email_enabled = True
    assert evaluate_stages(trigger, 2, {AlertStage.USER_WARNING.value}) == []


def test_evaluate_stages_granted_never_refires():
    trigger = InactivityTrigger(threshold_days=7, email_enabled=True, emergency_access_granted=True)
    assert evaluate_stages(trigger, 40) == []


def test_days_since_activity_handles_missing_and_future():
    assert inactivity_service.days_since_activity(None) == 0
    trigger = InactivityTrigger(last_activity_at=NOW + timedelta(days=2))
    assert inactivity_service.days_since_activity(trigger, NOW) == 0
    trigger.last_activity_at = NOW - timedelta(days=3, hours=23)
    assert inactivity_service.days_since_activity(trigger, NOW) == 3


# =============================================================================
# Monitor runs
# =============================================================================

@pytest.mark.asyncio
async def test_active_owner_gets_no_alerts(db, owner, make_trigger, email_gateway):
    make_trigger(owner, inactive_for=timedelta(hours=23))

    result = await _run(db, email_gateway)

    assert result.processed_users == []
    assert _alerts(db) == []
    assert email_gateway.sent == []


@pytest.mark.asyncio
async def test_user_warning_goes_to_owner(db, make_owner, make_trigger, email_gateway):
    owner = make_owner(full_name="Olivia")
    make_trigger(owner, inactive_for=timedelta(days=2))

    result = await _run(db, email_gateway)

    assert result.processed_users == [owner.id]
    assert email_gateway.recipients() == [owner.email]
    assert email_gateway.sent[0]["subject"] == "Inactivity Alert: 2 days"
    [alert] = _alerts(db)
    assert alert.stage == AlertStage.USER_WARNING.value
    assert alert.recipient_type == RecipientType.USER.value
    assert alert.inactive_days == 2
    assert alert.delivered is True


@pytest.mark.asyncio
async def test_email_disabled_suppresses_user_warning(db, owner, make_trigger, email_gateway):
    make_trigger(owner, inactive_for=timedelta(days=2), email_enabled=False)

    result = await _run(db, email_gateway)

    assert _alerts(db, AlertStage.USER_WARNING) == []
    assert result.processed_users == []


@pytest.mark.asyncio
async def test_nominee_warning_skips_unverified_nominees(db, owner, make_nominee, make_trigger, email_gateway):
    verified = make_nominee(owner)
    make_nominee(owner, status=NomineeStatus.PENDING)
    make_trigger(owner, inactive_for=timedelta(days=5))

    await _run(db, email_gateway)

    assert email_gateway.recipients() == [verified.email]
    [alert] = _alerts(db, AlertStage.NOMINEE_WARNING)
    assert alert.recipient_email == verified.email
    assert alert.recipient_type == RecipientType.NOMINEE.value


@pytest.mark.asyncio
async def test_nominee_warning_without_nominees_is_not_a_touch(db, owner, make_trigger, email_gateway):
    make_trigger(owner, inactive_for=timedelta(days=5))

    runs = [
        await _run(db, email_gateway, now=NOW + timedelta(hours=hour))
        for hour in range(3)
    ]

    assert [run.processed_users for run in runs] == [[], [], []]
    assert all(run.outcomes[0].stages == [] for run in runs)
    assert _alerts(db) == []
    assert email_gateway.sent == []


@pytest.mark.asyncio
async def test_window_stage_sent_once_per_episode(db, owner, make_trigger, email_gateway):
    make_trigger(owner, inactive_for=timedelta(days=1))

    await _run(db, email_gateway, now=NOW)
    await _run(db, email_gateway, now=NOW + timedelta(days=1))
    await _run(db, email_gateway, now=NOW + timedelta(days=2))

    assert len(_alerts(db, AlertStage.USER_WARNING)) == 1


@pytest.mark.asyncio
async def test_new_activity_starts_new_episode(db, owner, make_trigger, email_gateway):
    make_trigger(owner, inactive_for=timedelta(days=1))
    await _run(db, email_gateway, now=NOW)

    inactivity_service.record_activity(db, owner.id, now=NOW + timedelta(hours=1))
    await _run(db, email_gateway, now=NOW + timedelta(days=2, hours=1))

    assert len(_alerts(db, AlertStage.USER_WARNING)) == 2


@pytest.mark.asyncio
async def test_repeat_window_alerts_setting(db, owner, make_trigger, email_gateway, monkeypatch):
    monkeypatch.setattr(settings, "INACTIVITY_REPEAT_WINDOW_ALERTS", True)
    make_trigger(owner, inactive_for=timedelta(days=1))

    await _run(db, email_gateway, now=NOW)
    await _run(db, email_gateway, now=NOW + timedelta(hours=6))

    assert len(_alerts(db, AlertStage.USER_WARNING)) == 2


@pytest.mark.asyncio
async def test_emergency_grant_flips_flag_once(db, owner, make_nominee, make_trigger, email_gateway):
    nominee = make_nominee(owner)
    trigger = make_trigger(owner, inactive_for=timedelta(days=8))

    first = await _run(db, email_gateway)
    second = await _run(db, email_gateway, now=NOW + timedelta(days=1))

    db.refresh(trigger)
    assert trigger.emergency_access_granted is True
    assert trigger.emergency_granted_at is not None
    assert first.processed_users == [owner.id]
    assert second.processed_users == []
    [alert] = _alerts(db, AlertStage.EMERGENCY_GRANTED)
    assert alert.recipient_email == nominee.email
    assert email_gateway.sent[0]["subject"].startswith("Emergency Access Granted")


@pytest.mark.asyncio
async def test_emergency_grant_without_nominees_still_grants(db, owner, make_trigger, email_gateway):
    trigger = make_trigger(owner, inactive_for=timedelta(days=10))

    result = await _run(db, email_gateway)

    db.refresh(trigger)
    assert trigger.emergency_access_granted is True
    assert result.processed_users == [owner.id]
    assert _alerts(db) == []


@pytest.mark.asyncio
async def test_delivery_failure_is_recorded_and_batch_continues(
    db, make_owner, make_nominee, make_trigger, email_gateway
):
    first_owner = make_owner()
    bad = make_nominee(first_owner)
    good = make_nominee(first_owner)
    make_trigger(first_owner, inactive_for=timedelta(days=8))
    second_owner = make_owner()
    make_trigger(second_owner, inactive_for=timedelta(days=2))
    email_gateway.fail_for = {bad.email}

    result = await _run(db, email_gateway)

    assert set(result.processed_users) == {first_owner.id, second_owner.id}
    granted = {a.recipient_email: a for a in _alerts(db, AlertStage.EMERGENCY_GRANTED)}
    assert granted[bad.email].delivered is False
    assert "422" in granted[bad.email].error
    assert granted[good.email].delivered is True
    assert second_owner.email in email_gateway.recipients()


@pytest.mark.asyncio
async def test_missing_owner_profile_abandons_only_that_owner(
    db, make_owner, make_trigger, email_gateway
):
    orphan = make_owner()
    orphan_id = orphan.id
    healthy = make_owner()
    make_trigger(orphan, inactive_for=timedelta(days=2))
    make_trigger(healthy, inactive_for=timedelta(days=2))
    db.delete(orphan)
    db.commit()

    result = await _run(db, email_gateway)

    assert result.failed_users == [orphan_id]
    assert result.processed_users == [healthy.id]


@pytest.mark.asyncio
async def test_inactive_and_unseeded_triggers_are_skipped(db, make_owner, make_trigger, email_gateway):
    make_trigger(make_owner(), inactive_for=timedelta(days=9), is_active=False)
    make_trigger(make_owner(), inactive_for=None)

    result = await _run(db, email_gateway)

    assert result.processed_users == []
    assert [o.skipped_reason for o in result.outcomes] == ["no_activity_recorded"]


@pytest.mark.asyncio
async def test_push_summary_is_best_effort(db, make_owner, make_trigger, email_gateway, push_gateway):
    owner = make_owner(push=True)
    make_trigger(owner, inactive_for=timedelta(days=2))
    push_gateway.fail = True

    result = await _run(db, email_gateway, push_gateway)

    assert result.processed_users == [owner.id]
    assert push_gateway.calls[0]["title"] == "Inactivity Alert"
    assert len(_alerts(db, AlertStage.USER_WARNING)) == 1


@pytest.mark.asyncio
async def test_concurrent_run_matches_sequential(db, make_owner, make_trigger, email_gateway):
    from vault_api.db.session import SessionLocal

    owners = [make_owner() for _ in range(3)]
    for o in owners:
        make_trigger(o, inactive_for=timedelta(days=3))

    result = await inactivity_service.run_inactivity_check(
        db,
        now=NOW,
        email_gateway=email_gateway,
        push_gateway=None,
        session_factory=SessionLocal,
        max_concurrency=2,
    )

    assert sorted(result.processed_users) == sorted(o.id for o in owners)
    assert len(_alerts(db, AlertStage.USER_WARNING)) == 3


# =============================================================================
# End-to-end scenarios
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "level,can_download",
    [(AccessLevel.VIEW, False), (AccessLevel.DOWNLOAD, True)],
)
async def test_threshold_reached_opens_portal(
    db, owner, make_nominee, make_trigger, make_vault, email_gateway, level, can_download
):
    nominee = make_nominee(owner)
    vault = make_vault(owner)
    access_control_service.grant_access(
        db, owner.id, ResourceType.DOCUMENT, vault.document.id, nominee.id, level
    )
    trigger = make_trigger(owner, inactive_for=timedelta(days=8), threshold_days=7)

    await _run(db, email_gateway)

    db.refresh(trigger)
    assert trigger.emergency_access_granted is True
    assert len(_alerts(db, AlertStage.EMERGENCY_GRANTED)) == 1

    documents = emergency_portal_service.list_portal_documents(db, nominee.email)
    assert [d.id for d in documents] == [vault.document.id]
    assert documents[0].can_download is can_download
