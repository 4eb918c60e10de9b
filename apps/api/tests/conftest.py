"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database rebuilt from the ORM metadata for each test
- Owner / nominee / vault resource factories
- Fake email and push gateways that record calls
- HTTPX AsyncClient (anonymous and owner-authenticated)
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Must be set before vault_api is imported (settings and engine are module-level)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["TESTING"] = "1"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from vault_api.core.deps import COOKIE_NAME, get_db
from vault_api.core.errors import EmailDeliveryError, PushDeliveryError
from vault_api.core.security import create_session_token
from vault_api.db.base import Base
from vault_api.db.enums import NomineeStatus
from vault_api.db.models import (
    Category, Document, InactivityTrigger, Nominee, Subcategory, User,
)
from vault_api.db.session import SessionLocal, engine
from vault_api.main import app
from vault_api.services.email_gateway import EmailReceipt
from vault_api.services.push_service import PushResult

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code is free to commit."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_owner(db: Session):
    def _make(email: str | None = None, full_name: str | None = "Olivia Owner", push: bool = False) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"owner-{uuid.uuid4().hex[:8]}@test.com",
            full_name=full_name,
            push_notifications_enabled=push,
        )
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def owner(make_owner) -> User:
    return make_owner()


@pytest.fixture
def make_nominee(db: Session):
    def _make(
        owner: User,
        email: str | None = None,
        status: NomineeStatus = NomineeStatus.VERIFIED,
        full_name: str = "Nina Nominee",
    ) -> Nominee:
        nominee = Nominee(
            id=uuid.uuid4(),
            owner_id=owner.id,
            email=email or f"nominee-{uuid.uuid4().hex[:8]}@test.com",
            full_name=full_name,
            status=status.value,
            verified_at=NOW if status == NomineeStatus.VERIFIED else None,
        )
        db.add(nominee)
        db.commit()
        return nominee
    return _make


@pytest.fixture
def make_trigger(db: Session):
    def _make(
        owner: User,
        inactive_for: timedelta | None = timedelta(days=0),
        threshold_days: int = 7,
        email_enabled: bool = True,
        granted: bool = False,
        is_active: bool = True,
        now: datetime = NOW,
    ) -> InactivityTrigger:
        trigger = InactivityTrigger(
            owner_id=owner.id,
            is_active=is_active,
            threshold_days=threshold_days,
            last_activity_at=(now - inactive_for) if inactive_for is not None else None,
            email_enabled=email_enabled,
            emergency_access_granted=granted,
            emergency_granted_at=now if granted else None,
        )
        db.add(trigger)
        db.commit()
        return trigger
    return _make


@dataclass
class Vault:
    category: Category
    subcategory: Subcategory
    document: Document
    loose_document: Document


@pytest.fixture
def make_vault(db: Session):
    """Category > subcategory > document, plus a document outside any category."""
    def _make(owner: User) -> Vault:
        category = Category(id=uuid.uuid4(), owner_id=owner.id, name="Insurance")
        db.add(category)
        db.flush()
        subcategory = Subcategory(
            id=uuid.uuid4(), owner_id=owner.id, category_id=category.id, name="Life"
        )
        db.add(subcategory)
        db.flush()
        document = Document(
            id=uuid.uuid4(),
            owner_id=owner.id,
            category_id=category.id,
            subcategory_id=subcategory.id,
            file_name="policy.pdf",
            file_type="application/pdf",
            file_size=2048,
            file_path=f"{owner.id}/policy.pdf",
        )
        loose = Document(
            id=uuid.uuid4(),
            owner_id=owner.id,
            file_name="will.pdf",
            file_type="application/pdf",
            file_path=f"{owner.id}/will.pdf",
        )
        db.add_all([document, loose])
        db.commit()
        return Vault(category=category, subcategory=subcategory, document=document, loose_document=loose)
    return _make


# =============================================================================
# Gateway Fakes
# =============================================================================

@dataclass
class FakeEmailGateway:
    """Records every send; raises for addresses listed in fail_for."""
    fail_for: set[str] = field(default_factory=set)
    sent: list[dict] = field(default_factory=list)

    async def send(self, *, from_email: str, to: list[str], subject: str, html: str) -> EmailReceipt:
        if set(to) & self.fail_for:
            raise EmailDeliveryError("Resend API error: 422 (invalid recipient)")
        self.sent.append({"from": from_email, "to": to, "subject": subject, "html": html})
        return EmailReceipt(message_id=f"msg_{len(self.sent)}")

    def recipients(self) -> list[str]:
        return [addr for message in self.sent for addr in message["to"]]


@dataclass
class FakePushGateway:
    fail: bool = False
    calls: list[dict] = field(default_factory=list)

    async def send_push(self, user_id, title, body, data=None) -> PushResult:
        self.calls.append({"user_id": user_id, "title": title, "body": body, "data": data})
        if self.fail:
            raise PushDeliveryError("FCM unavailable")
        return PushResult(success=True, sent=1, total=1, cleaned=0)


@pytest.fixture
def email_gateway() -> FakeEmailGateway:
    return FakeEmailGateway()


@pytest.fixture
def push_gateway() -> FakePushGateway:
    return FakePushGateway()


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public and internal endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def owner_client(db: Session, owner: User) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient authenticated as `owner` via session cookie."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    token = create_session_token(owner.id, owner.token_version)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={COOKIE_NAME: token},
    ) as c:
        yield c

    app.dependency_overrides.clear()
