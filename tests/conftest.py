"""Shared test fixtures and configuration."""
import os

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from virtual_mentor.main import app
from virtual_mentor.core.dependencies import get_clock, get_settings, get_telephony_factory
from virtual_mentor.db.database import get_db, get_session_factory
from virtual_mentor.db.models import Base
from virtual_mentor.services.persistence.sessions import SessionPersistenceService
from virtual_mentor.services.realtime.feed import ChangeFeed, get_change_feed
from tests.support import FakeClock, FakeTelephony, make_settings, sign_webhook, webhook_body


@pytest.fixture
def test_settings():
    """Settings with a complete LiveKit configuration."""
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_telephony():
    return FakeTelephony()


@pytest.fixture
def telephony_factory(fake_telephony):
    def _factory(config):
        fake_telephony.configs.append(config)
        return fake_telephony
    return _factory


@pytest.fixture
async def feed():
    """Fresh change feed per test."""
    feed = ChangeFeed()
    yield feed
    await feed.close()


@pytest.fixture
async def test_db_engine(tmp_path):
    """Create test database engine.

    File backed so observers and request handlers each get their own
    connection, like they do against a real database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def session_service(test_db, feed, clock):
    return SessionPersistenceService(test_db, feed, clock)


@pytest.fixture
async def api_client(session_factory, test_settings, telephony_factory, feed, clock):
    """HTTP client against the app with database, settings, provider and clock overridden."""
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_telephony_factory] = lambda: telephony_factory
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
def post_webhook(api_client):
    """Send a signed webhook delivery."""
    async def _post(event, room_name, identity=None, room_duration=None, authorization=None):
        body = webhook_body(event, room_name, identity=identity, room_duration=room_duration)
        headers = {"Content-Type": "application/webhook+json"}
        headers["Authorization"] = authorization if authorization is not None else sign_webhook(body)
        return await api_client.post("/api/webhooks/livekit", content=body, headers=headers)
    return _post
