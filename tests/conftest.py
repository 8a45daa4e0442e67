from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from api.config.settings import DeliveryMode, Settings, get_settings
from api.infra.database import Base, get_session
from api.main import create_app

# Import models to ensure they're registered
from api.v1.communications.models import (
    DeliveryJob,
    DeliveryJobStatus,
    MessageRecipient,
    MessageSend,
    RecipientDeliveryStatus,
    SendDeliveryStatus,
    UserProfile,
)

WORKER_TOKEN = "test-worker-token"
NOW = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)
TEST_PARISH_ID = UUID("00000000-0000-0000-0000-0000000000a1")


def naive(value: datetime | None) -> datetime | None:
    """SQLite hands back naive UTC datetimes; compare on that basis."""
    if value is None:
        return None
    return value.replace(tzinfo=None)


@pytest.fixture
def delivery_settings() -> Settings:
    """Settings with mock delivery and a worker token configured."""
    return Settings(
        _env_file=None,
        environment="development",
        debug=False,
        database_url="sqlite+aiosqlite://",
        parish_communications_delivery_mode=DeliveryMode.MOCK,
        parish_communications_worker_token=WORKER_TOKEN,
    )


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database engine per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with AsyncSession(test_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def make_send(db_session):
    """Factory for a message send with recipients and optional profiles."""

    async def _make_send(
        recipients: dict[str, str] | None = None,
        emails: dict[str, str | None] | None = None,
        delivery_status: str = SendDeliveryStatus.QUEUED.value,
        subject: str = "Lenten schedule",
        body: str = "Stations of the Cross every Friday at 7pm.",
    ) -> MessageSend:
        recipients = recipients or {"user_a": RecipientDeliveryStatus.PENDING.value}
        emails = emails if emails is not None else {
            user_id: f"{user_id}@example.org" for user_id in recipients
        }

        send = MessageSend(
            id=uuid4(),
            parish_id=TEST_PARISH_ID,
            created_by_clerk_user_id="admin_1",
            audience_type="all_members",
            subject=subject,
            body=body,
            recipient_count=len(recipients),
            delivery_status=delivery_status,
            provider="mock",
        )
        db_session.add(send)
        db_session.add_all(
            MessageRecipient(
                send_id=send.id,
                parish_id=TEST_PARISH_ID,
                clerk_user_id=user_id,
                delivery_status=status,
            )
            for user_id, status in recipients.items()
        )
        for user_id, email in emails.items():
            if await db_session.get(UserProfile, user_id) is None:
                db_session.add(UserProfile(clerk_user_id=user_id, email=email))
        await db_session.commit()
        return send

    return _make_send


@pytest.fixture
def make_job(db_session):
    """Factory for a delivery job; due at NOW unless overridden."""

    async def _make_job(
        send_id: UUID | None = None,
        provider: str = "mock",
        status: str = DeliveryJobStatus.PENDING.value,
        attempts: int = 0,
        max_attempts: int = 5,
        next_attempt_at: datetime = NOW,
        created_at: datetime = NOW,
        locked_at: datetime | None = None,
        locked_by: str | None = None,
    ) -> DeliveryJob:
        job = DeliveryJob(
            send_id=send_id or uuid4(),
            parish_id=TEST_PARISH_ID,
            provider=provider,
            status=status,
            attempts=attempts,
            max_attempts=max_attempts,
            next_attempt_at=next_attempt_at,
            created_at=created_at,
            updated_at=created_at,
            locked_at=locked_at,
            locked_by=locked_by,
        )
        db_session.add(job)
        await db_session.commit()
        return job

    return _make_job


@pytest.fixture
def app(db_session, delivery_settings):
    """Create a test FastAPI application with test database and settings."""
    app = create_app()

    app.dependency_overrides[get_session] = lambda: db_session
    app.dependency_overrides[get_settings] = lambda: delivery_settings

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def worker_headers() -> dict[str, str]:
    return {"X-Parish-Worker-Token": WORKER_TOKEN}
