"""
Taskly test suite. Shared fixtures.

Run:  pytest tests/ -v

The app runs against an in-memory SQLite database; rate limiting, the
overdue sweep and outbound email are switched off through the environment
before anything from `app` is imported.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["OVERDUE_SWEEP_ENABLED"] = "false"
os.environ["SEED_ACHIEVEMENTS"] = "false"
os.environ["RESEND_API_KEY"] = ""
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import aget_db, register_models
from app.main import app
from app.models.base import Base
from app.utils.dates import utcnow


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    register_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def app_db(session_factory):
    """Route the app's `aget_db` dependency to the test engine."""

    async def override_aget_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[aget_db] = override_aget_db
    yield session_factory
    app.dependency_overrides.clear()


@pytest.fixture
async def make_client(app_db):
    """
    Factory for clients. Each client keeps its own cookie jar, so one client
    per registered user acts as that user's browser session.
    """
    clients = []

    async def _make(username=None, password="secret123"):
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        if username:
            response = await client.post("/api/auth/register", json={
                "fullname": username.capitalize() + " Doe",
                "username": username,
                "email": f"{username}@x.com",
                "password": password,
            })
            assert response.status_code == 201, response.text
            client.user = response.json()["data"]
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(make_client):
    """Anonymous client."""
    return await make_client()


@pytest.fixture
async def jane(make_client):
    return await make_client("jane")


@pytest.fixture
async def bob(make_client):
    return await make_client("bob")


@pytest.fixture
def tomorrow():
    return (utcnow() + timedelta(days=1)).isoformat()
