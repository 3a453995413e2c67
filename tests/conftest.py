"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.access.context import Identity
from mibuks.access.tenant import TenantResolver
from mibuks.storage.changes import ChangeFeed
from mibuks.storage.database import init_db
from mibuks.storage.rows import RowStore
from mibuks.web.app import create_app


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def file_engine(tmp_path):
    """File-backed SQLite engine, so concurrent sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mibuks.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def seed(async_engine: AsyncEngine) -> Callable[..., Awaitable[None]]:
    """Insert model instances directly, bypassing the scoped client."""

    async def _seed(*rows: SQLModel) -> None:
        async with AsyncSession(async_engine) as session:
            for row in rows:
                session.add(row)
            await session.commit()

    return _seed


@pytest.fixture()
def owner() -> Identity:
    return Identity(user_id="user-a", email="a@example.com")


@pytest.fixture()
def other_owner() -> Identity:
    return Identity(user_id="user-b", email="b@example.com")


@pytest.fixture()
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture()
def rows(async_engine: AsyncEngine, feed: ChangeFeed) -> RowStore:
    return RowStore(async_engine, feed)


@pytest.fixture()
def tenants(async_engine: AsyncEngine) -> TenantResolver:
    return TenantResolver(async_engine)


@pytest.fixture()
def app(async_engine: AsyncEngine):
    """A fresh app bound to the in-memory engine."""
    return create_app(engine=async_engine)


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as c:
        yield c


@pytest.fixture()
def login(client: AsyncClient) -> Callable[[str], Awaitable[dict[str, Any]]]:
    """Sign in as ``email``; the session cookie stays on ``client``."""

    async def _login(email: str) -> dict[str, Any]:
        resp = await client.post("/api/auth/login", json={"email": email, "password": "pw"})
        assert resp.status_code == 200
        return resp.json()

    return _login


@pytest.fixture()
async def authed_client(client: AsyncClient, login):
    """A client signed in as a plain shop owner."""
    await login("owner@example.com")
    return client
