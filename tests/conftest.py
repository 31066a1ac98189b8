"""
Test fixtures for the Ledger Books API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - client: Async HTTP test client (unauthenticated)
  - admin / editor / viewer / outsider: Signed-up users with auth headers
  - account_id: An account with `editor` as EDITOR and `viewer` as VIEWER

Key design decisions:
  - In-memory SQLite is used for speed and isolation. Each test gets a
    completely fresh database — no state leaks between tests.
  - We override FastAPI's get_db dependency to inject our test sessions,
    so the application code works exactly as it does in production.
  - Users are created through the real signup endpoint. Admin rights come
    from the ADMIN_EMAILS allow-list, set below before the app is imported.
  - Users carry their own headers instead of mutating client.headers, so
    one test can act as several users on the same client.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["ADMIN_EMAILS"] = "admin@example.com"

from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ledgerbook.database import Base, get_db
from ledgerbook.main import app


# In-memory SQLite for fast, isolated tests. StaticPool keeps every session
# on the one connection that holds the database. No rollback on check-in, or
# a finished request would discard a concurrent request's pending writes.
TEST_DATABASE_URL = "sqlite+aiosqlite://"

PASSWORD = "SecurePass123!"


@dataclass
class ApiUser:
    id: str
    email: str
    headers: dict


async def signup(client: AsyncClient, email: str) -> ApiUser:
    """Register a user through the API and return their id and auth headers."""
    response = await client.post(
        "/auth/signup",
        json={"email": email, "password": PASSWORD},
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    data = response.json()["data"]
    return ApiUser(
        id=data["user_id"],
        email=email,
        headers={"Authorization": f"Bearer {data['token']}"},
    )


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        pool_reset_on_return=None,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(client):
    """Sign up extra users inside a test: `user = await make_user("x@example.com")`."""
    async def _make_user(email: str) -> ApiUser:
        return await signup(client, email)
    return _make_user


@pytest_asyncio.fixture
async def admin(client) -> ApiUser:
    """A user on the admin allow-list."""
    return await signup(client, "admin@example.com")


@pytest_asyncio.fixture
async def editor(client) -> ApiUser:
    return await signup(client, "editor@example.com")


@pytest_asyncio.fixture
async def viewer(client) -> ApiUser:
    return await signup(client, "viewer@example.com")


@pytest_asyncio.fixture
async def outsider(client) -> ApiUser:
    """A user with no memberships at all."""
    return await signup(client, "outsider@example.com")


@pytest_asyncio.fixture
async def account_id(client, admin, editor, viewer) -> int:
    """An account created by the admin, shared with an editor and a viewer."""
    response = await client.post(
        "/accounts",
        json={
            "title": "Household",
            "description": "Shared expenses",
            "editors": [editor.id],
            "viewers": [viewer.id],
        },
        headers=admin.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]
