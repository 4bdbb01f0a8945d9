"""
Test fixtures for the Joint Banking API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh file-backed SQLite database per test
  - client: Async HTTP test client (unauthenticated)
  - authenticated_client: Test client whose default headers carry the JWT
    of a pre-registered user (the "owner" in most tests)
  - owner / second_user / third_user: Registered users as dicts with
    `id`, `email`, `token` and ready-made `headers`
  - joint_account: An account opened by `owner`

Key design decisions:
  - Each test gets its own SQLite file under pytest's tmp_path. A file (not
    :memory:) lets concurrent requests use separate connections, which the
    concurrency tests need to exercise real lock contention.
  - We override FastAPI's get_db dependency to inject sessions bound to the
    test engine, so the application code works exactly as in production.
  - Users are created via the real register endpoint, not DB inserts.
  - Requests made on behalf of another user pass that user's `headers`
    explicitly; per-request headers override the client's default ones.
"""

import os

# Settings are read at import time; configure them before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./data/test.db")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from jointbank.database import Base, get_db
from jointbank.main import app


OWNER = {
    "email": "anna@example.com",
    "password": "SecurePass123!",
    "firstName": "Anna",
    "lastName": "Schmidt",
}

SECOND_USER = {
    "email": "jonas@example.com",
    "password": "SecurePass456!",
    "firstName": "Jonas",
    "lastName": "Schmidt",
}

THIRD_USER = {
    "email": "mallory@example.com",
    "password": "SecurePass789!",
    "firstName": "Mallory",
    "lastName": "Outsider",
}


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    """Session factory bound to the test engine, for direct DB inspection."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    per-test database instead of the real one.
    """

    async def override_get_db():
        async with session_factory() as session:
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


async def register_user(client: AsyncClient, payload: dict) -> dict:
    """Register a user via the API and return id, email, token and headers."""
    response = await client.post("/auth/register", json=payload)
    assert response.status_code == 201, f"Register failed: {response.text}"
    data = response.json()["data"]
    return {
        "id": data["user"]["id"],
        "email": data["user"]["email"],
        "password": payload["password"],
        "token": data["token"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


@pytest_asyncio.fixture
async def owner(client):
    return await register_user(client, OWNER)


@pytest_asyncio.fixture
async def second_user(client):
    """A second user, typically invited as co-owner."""
    return await register_user(client, SECOND_USER)


@pytest_asyncio.fixture
async def third_user(client):
    """A user who never gets access to the owner's accounts."""
    return await register_user(client, THIRD_USER)


@pytest_asyncio.fixture
async def authenticated_client(client, owner):
    """Test client that acts as `owner` unless a request overrides headers."""
    client.headers["Authorization"] = owner["headers"]["Authorization"]
    return client


@pytest_asyncio.fixture
async def joint_account(authenticated_client):
    """A fresh joint account owned by `owner`, balance €0."""
    response = await authenticated_client.post("/accounts", json={"name": "Household"})
    assert response.status_code == 201, f"Account creation failed: {response.text}"
    return response.json()["data"]


@pytest_asyncio.fixture
async def transact(client):
    """
    Helper that POSTs a transaction to an account.

    Usage:
        response = await transact(account_id, type="DEPOSIT", amount=100)
        response = await transact(account_id, headers=other["headers"], ...)
    """

    async def _transact(account_id: str, headers: dict | None = None, **body):
        body.setdefault("description", body["type"].title())
        return await client.post(
            f"/accounts/{account_id}/transactions",
            json=body,
            headers=headers,
        )

    return _transact
