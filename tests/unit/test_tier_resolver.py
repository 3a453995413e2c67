"""Unit tests for AdminTierResolver and SessionTierCache."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from mibuks.access import tiers
from mibuks.access.context import Identity, TierInfo
from mibuks.access.tiers import AdminTierResolver, SessionTierCache
from mibuks.exceptions import TransientStorageError
from mibuks.models.database import Ngo, NgoMember, UserRole
from mibuks.types import AdminTier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture()
def resolver(async_engine: AsyncEngine) -> AdminTierResolver:
    return AdminTierResolver(async_engine)


@pytest.mark.unit
class TestAdminTierResolver:
    async def test_no_identity_is_none(self, resolver: AdminTierResolver) -> None:
        info = await resolver.resolve(None)
        assert info.tier is AdminTier.NONE
        assert info.ngo_id is None

    async def test_plain_user_is_tenant_owner(
        self, resolver: AdminTierResolver, owner: Identity
    ) -> None:
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.TENANT_OWNER
        assert not info.is_admin

    @pytest.mark.parametrize("role", ["admin", "system_admin"])
    async def test_system_roles(
        self, resolver: AdminTierResolver, owner: Identity, seed, role: str
    ) -> None:
        await seed(UserRole(user_id=owner.user_id, role=role))
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.SYSTEM_ADMIN
        assert info.ngo_id is None

    async def test_other_roles_do_not_grant_admin(
        self, resolver: AdminTierResolver, owner: Identity, seed
    ) -> None:
        await seed(UserRole(user_id=owner.user_id, role="user"))
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.TENANT_OWNER

    async def test_ngo_admin_carries_ngo_id(
        self, resolver: AdminTierResolver, owner: Identity, seed
    ) -> None:
        await seed(
            Ngo(id="ngo-1", name="Helping Hands"),
            NgoMember(ngo_id="ngo-1", user_id=owner.user_id, role="admin"),
        )
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.NGO_ADMIN
        assert info.ngo_id == "ngo-1"
        assert info.is_admin

    async def test_inactive_ngo_admin_is_tenant_owner(
        self, resolver: AdminTierResolver, owner: Identity, seed
    ) -> None:
        await seed(
            Ngo(id="ngo-1", name="Helping Hands"),
            NgoMember(ngo_id="ngo-1", user_id=owner.user_id, role="admin", is_active=False),
        )
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.TENANT_OWNER

    async def test_ngo_member_without_admin_role(
        self, resolver: AdminTierResolver, owner: Identity, seed
    ) -> None:
        await seed(
            Ngo(id="ngo-1", name="Helping Hands"),
            NgoMember(ngo_id="ngo-1", user_id=owner.user_id, role="member"),
        )
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.TENANT_OWNER

    async def test_system_admin_wins_over_ngo_admin(
        self, resolver: AdminTierResolver, owner: Identity, seed
    ) -> None:
        await seed(
            Ngo(id="ngo-1", name="Helping Hands"),
            NgoMember(ngo_id="ngo-1", user_id=owner.user_id, role="admin"),
            UserRole(user_id=owner.user_id, role="system_admin"),
        )
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.SYSTEM_ADMIN
        assert info.ngo_id is None

    async def test_storage_failure_degrades_to_tenant_owner(
        self, resolver: AdminTierResolver, owner: Identity, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def broken(user_id: str) -> TierInfo:
            raise TransientStorageError("down")

        monkeypatch.setattr(resolver, "_classify", broken)
        info = await resolver.resolve(owner)
        assert info.tier is AdminTier.TENANT_OWNER


@pytest.mark.unit
class TestSessionTierCaching:
    async def test_result_cached_per_session(
        self, resolver: AdminTierResolver, owner: Identity, seed
    ) -> None:
        first = await resolver.resolve_for_session("tok", owner)
        assert first.tier is AdminTier.TENANT_OWNER
        # A role granted mid-session is not picked up until the next session.
        await seed(UserRole(user_id=owner.user_id, role="admin"))
        assert (await resolver.resolve_for_session("tok", owner)).tier is AdminTier.TENANT_OWNER
        resolver.cache.clear("tok")
        assert (await resolver.resolve_for_session("tok-2", owner)).tier is AdminTier.SYSTEM_ADMIN

    async def test_failure_is_not_cached(
        self, resolver: AdminTierResolver, owner: Identity, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def broken(user_id: str) -> TierInfo:
            raise TransientStorageError("down")

        monkeypatch.setattr(resolver, "_classify", broken)
        info = await resolver.resolve_for_session("tok", owner)
        assert info.tier is AdminTier.TENANT_OWNER
        assert resolver.cache.get("tok") is None

    async def test_resolution_in_flight_during_sign_out_is_discarded(
        self, resolver: AdminTierResolver, owner: Identity, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow(user_id: str) -> TierInfo:
            started.set()
            await release.wait()
            return TierInfo(tier=AdminTier.SYSTEM_ADMIN)

        monkeypatch.setattr(resolver, "_classify", slow)
        task = asyncio.create_task(resolver.resolve_for_session("tok", owner))
        await started.wait()
        resolver.cache.clear("tok")  # sign-out
        release.set()

        info = await task
        assert info.tier is AdminTier.NONE
        assert resolver.cache.get("tok") is None

    async def test_resolution_started_after_sign_out_is_discarded(
        self, resolver: AdminTierResolver, owner: Identity, seed
    ) -> None:
        await seed(UserRole(user_id=owner.user_id, role="system_admin"))
        resolver.cache.clear("dead-token")

        info = await resolver.resolve_for_session("dead-token", owner)

        assert info.tier is AdminTier.NONE
        assert resolver.cache.get("dead-token") is None

    async def test_no_identity_skips_cache(self, resolver: AdminTierResolver) -> None:
        info = await resolver.resolve_for_session("tok", None)
        assert info.tier is AdminTier.NONE
        assert resolver.cache.get("tok") is None


@pytest.mark.unit
class TestSessionTierCache:
    def test_store_and_get(self) -> None:
        cache = SessionTierCache()
        epoch = cache.begin("a")
        assert cache.store("a", epoch, TierInfo(tier=AdminTier.NGO_ADMIN, ngo_id="n"))
        assert cache.get("a") == TierInfo(tier=AdminTier.NGO_ADMIN, ngo_id="n")

    def test_store_after_clear_is_refused(self) -> None:
        cache = SessionTierCache()
        epoch = cache.begin("a")
        cache.clear("a")
        assert not cache.store("a", epoch, TierInfo(tier=AdminTier.TENANT_OWNER))
        assert cache.get("a") is None

    def test_cleared_token_stays_ended(self) -> None:
        cache = SessionTierCache()
        old = cache.begin("a")
        cache.clear("a")
        late = cache.begin("a")
        assert late != old
        assert not cache.store("a", old, TierInfo(tier=AdminTier.TENANT_OWNER))
        assert not cache.store("a", late, TierInfo(tier=AdminTier.TENANT_OWNER))
        assert cache.get("a") is None

    def test_ended_tokens_are_bounded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(tiers, "_MAX_ENDED_TOKENS", 2)
        cache = SessionTierCache()
        for token in ("a", "b", "c"):
            cache.clear(token)
        assert cache.begin("a") > 0
        assert cache.begin("c") == 0

    def test_sessions_are_independent(self) -> None:
        cache = SessionTierCache()
        ea = cache.begin("a")
        eb = cache.begin("b")
        cache.store("a", ea, TierInfo(tier=AdminTier.SYSTEM_ADMIN))
        cache.store("b", eb, TierInfo(tier=AdminTier.TENANT_OWNER))
        cache.clear("a")
        assert cache.get("a") is None
        assert cache.get("b") == TierInfo(tier=AdminTier.TENANT_OWNER)
