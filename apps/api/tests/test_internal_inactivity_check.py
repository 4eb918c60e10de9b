"""Tests for the scheduler-facing inactivity check endpoint."""

from datetime import timedelta

import pytest

from vault_api.core.config import settings
from vault_api.db.enums import AlertStage
from vault_api.db.models import AlertRecord
from vault_api.services import inactivity_service
from vault_api.utils.datetime_utils import utcnow

ENDPOINT = "/internal/scheduled/inactivity-check"


@pytest.fixture
def internal_secret(monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_SECRET", "cron-secret")
    return "cron-secret"


@pytest.fixture
def fake_gateways(monkeypatch, email_gateway):
    monkeypatch.setattr(inactivity_service, "get_email_gateway", lambda: email_gateway)
    monkeypatch.setattr(inactivity_service, "get_push_gateway", lambda db: None)
    return email_gateway


@pytest.mark.asyncio
async def test_unconfigured_secret_returns_501(client, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_SECRET", "")

    response = await client.post(ENDPOINT, headers={"X-Internal-Secret": "anything"})

    assert response.status_code == 501


@pytest.mark.asyncio
async def test_wrong_secret_returns_403(client, internal_secret):
    response = await client.post(ENDPOINT, headers={"X-Internal-Secret": "nope"})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_secret_header_is_rejected(client, internal_secret):
    response = await client.post(ENDPOINT)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_run_reports_processed_owners(
    client, db, make_owner, make_trigger, internal_secret, fake_gateways
):
    now = utcnow()
    warned = make_owner()
    make_trigger(warned, inactive_for=timedelta(days=2, hours=1), now=now)
    quiet = make_owner()
    make_trigger(quiet, inactive_for=timedelta(hours=3), now=now)

    response = await client.post(ENDPOINT, headers={"X-Internal-Secret": internal_secret})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "processedUsers": 1,
        "userIds": [str(warned.id)],
    }
    alerts = db.query(AlertRecord).all()
    assert [a.stage for a in alerts] == [AlertStage.USER_WARNING.value]
    assert fake_gateways.recipients() == [warned.email]


@pytest.mark.asyncio
async def test_trigger_load_failure_returns_500(client, internal_secret, monkeypatch):
    async def broken_run(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(inactivity_service, "run_inactivity_check", broken_run)

    response = await client.post(ENDPOINT, headers={"X-Internal-Secret": internal_secret})

    assert response.status_code == 500
    assert response.json() == {"error": "database unavailable"}
