"""Unit tests for TenantResolver."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.access.context import Identity
from mibuks.access.tenant import TenantResolver
from mibuks.exceptions import TransientStorageError
from mibuks.models.database import Business

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def _count_businesses(engine: AsyncEngine, owner_id: str) -> int:
    async with AsyncSession(engine) as session:
        result = await session.execute(select(Business).where(Business.owner_id == owner_id))
        return len(result.scalars().all())


@pytest.mark.unit
class TestTenantResolver:
    async def test_creates_with_defaults(self, tenants: TenantResolver, owner: Identity) -> None:
        business = await tenants.resolve_or_create(owner)
        assert business.owner_id == owner.user_id
        assert business.business_name == "My Business"
        assert business.business_type == "retail"
        assert business.currency == "SLL"
        assert business.ngo_id is None

    async def test_get_does_not_create(self, tenants: TenantResolver, owner: Identity) -> None:
        assert await tenants.get(owner) is None
        assert await tenants.get(owner) is None

    async def test_repeated_calls_return_same_tenant(
        self, tenants: TenantResolver, owner: Identity, async_engine: AsyncEngine
    ) -> None:
        first = await tenants.resolve_or_create(owner)
        second = await tenants.resolve_or_create(owner)
        assert first.id == second.id
        assert await _count_businesses(async_engine, owner.user_id) == 1

    async def test_returns_existing_business(
        self, tenants: TenantResolver, owner: Identity, seed
    ) -> None:
        await seed(Business(id="biz-1", owner_id=owner.user_id, business_name="Kiosk"))
        business = await tenants.resolve_or_create(owner)
        assert business.id == "biz-1"
        assert business.business_name == "Kiosk"

    async def test_owners_get_distinct_tenants(
        self, tenants: TenantResolver, owner: Identity, other_owner: Identity
    ) -> None:
        a = await tenants.resolve_or_create(owner)
        b = await tenants.resolve_or_create(other_owner)
        assert a.id != b.id

    async def test_lost_race_returns_winner(
        self,
        tenants: TenantResolver,
        owner: Identity,
        seed,
        async_engine: AsyncEngine,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        # The winner's row exists, but this caller's first lookup missed it.
        await seed(Business(id="winner", owner_id=owner.user_id, business_name="Winner"))
        real_get = tenants.get
        calls = {"n": 0}

        async def racing_get(identity: Identity) -> Business | None:
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_get(identity)

        monkeypatch.setattr(tenants, "get", racing_get)
        business = await tenants.resolve_or_create(owner)
        assert business.id == "winner"
        assert calls["n"] == 2
        assert await _count_businesses(async_engine, owner.user_id) == 1

    async def test_failed_reread_surfaces_storage_error(
        self,
        tenants: TenantResolver,
        owner: Identity,
        seed,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await seed(Business(owner_id=owner.user_id, business_name="Winner"))

        async def always_missing(identity: Identity) -> Business | None:
            return None

        monkeypatch.setattr(tenants, "get", always_missing)
        with pytest.raises(TransientStorageError):
            await tenants.resolve_or_create(owner)


@pytest.mark.unit
class TestTenantResolverConcurrency:
    async def test_concurrent_callers_share_one_tenant(self, file_engine: AsyncEngine) -> None:
        identity = Identity(user_id="racer", email="racer@example.com")
        first, second = await asyncio.gather(
            TenantResolver(file_engine).resolve_or_create(identity),
            TenantResolver(file_engine).resolve_or_create(identity),
        )
        assert first.id == second.id
        assert await _count_businesses(file_engine, identity.user_id) == 1
