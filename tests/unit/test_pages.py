"""Unit tests for the page access gate."""

from __future__ import annotations

import pytest

from mibuks.access.context import Identity
from mibuks.access.pages import (
    ADMIN_PANEL_ROUTE,
    PAGE_ROUTES,
    PENDING_OVERRIDES,
    MemberPageGrantSource,
    NoPageGrants,
    PageOverrides,
    is_admin_panel_visible,
    is_page_visible,
    visible_menu,
)
from mibuks.models.database import Business, OrganizationMember
from mibuks.types import AdminTier, PageKey


@pytest.mark.unit
class TestIsPageVisible:
    def test_settings_visible_to_tenant_owner(self) -> None:
        assert is_page_visible("settings", AdminTier.TENANT_OWNER) is True

    @pytest.mark.parametrize("tier", list(AdminTier))
    def test_every_page_visible_by_default(self, tier: AdminTier) -> None:
        assert all(is_page_visible(page, tier) for page in PageKey)

    def test_unknown_page_is_hidden(self) -> None:
        assert is_page_visible("payroll", AdminTier.SYSTEM_ADMIN) is False

    def test_loaded_overrides_narrow(self) -> None:
        overrides = PageOverrides(pages=frozenset({PageKey.SALES}))
        assert is_page_visible("sales", AdminTier.TENANT_OWNER, overrides) is True
        assert is_page_visible("settings", AdminTier.TENANT_OWNER, overrides) is False

    def test_loading_overrides_fail_open(self) -> None:
        assert is_page_visible("settings", AdminTier.TENANT_OWNER, PENDING_OVERRIDES) is True

    def test_unavailable_overrides_fail_open(self) -> None:
        assert is_page_visible("reports", AdminTier.TENANT_OWNER, PageOverrides()) is True


@pytest.mark.unit
class TestAdminPanel:
    def test_admin_tiers_see_panel(self) -> None:
        assert is_admin_panel_visible(AdminTier.SYSTEM_ADMIN) is True
        assert is_admin_panel_visible(AdminTier.NGO_ADMIN) is True

    def test_other_tiers_do_not(self) -> None:
        assert is_admin_panel_visible(AdminTier.TENANT_OWNER) is False
        assert is_admin_panel_visible(AdminTier.NONE) is False

    def test_admin_panel_is_not_a_page_key(self) -> None:
        assert ADMIN_PANEL_ROUTE not in PAGE_ROUTES.values()


@pytest.mark.unit
class TestVisibleMenu:
    def test_full_menu_in_order(self) -> None:
        menu = visible_menu(AdminTier.TENANT_OWNER)
        assert [item.key for item in menu] == [p.value for p in PageKey]
        assert menu[0].url == "/"
        assert menu[0].title_key == "nav.dashboard"

    def test_every_page_maps_to_one_route(self) -> None:
        assert set(PAGE_ROUTES) == set(PageKey)
        assert len(set(PAGE_ROUTES.values())) == len(PageKey)

    def test_narrowed_menu(self) -> None:
        overrides = PageOverrides(pages=frozenset({PageKey.DASHBOARD, PageKey.EXPENSES}))
        menu = visible_menu(AdminTier.TENANT_OWNER, overrides)
        assert [item.url for item in menu] == ["/", "/expenses"]


@pytest.mark.unit
class TestPageGrantSources:
    async def test_no_grants_source(self, owner: Identity) -> None:
        assert await NoPageGrants().overrides_for(owner) is None

    async def test_owner_is_not_narrowed(self, async_engine, seed, owner: Identity) -> None:
        await seed(Business(id="biz", owner_id=owner.user_id, business_name="Shop"))
        source = MemberPageGrantSource(async_engine)
        assert await source.overrides_for(owner) is None

    async def test_member_grants(self, async_engine, seed, owner, other_owner) -> None:
        await seed(
            Business(id="biz", owner_id=owner.user_id, business_name="Shop"),
            OrganizationMember(
                business_id="biz",
                user_id=other_owner.user_id,
                accessible_pages=["sales", "inventory", "bogus"],
            ),
        )
        source = MemberPageGrantSource(async_engine)
        overrides = await source.overrides_for(other_owner)
        assert overrides == PageOverrides(pages=frozenset({PageKey.SALES, PageKey.INVENTORY}))

    async def test_inactive_member_not_narrowed(
        self, async_engine, seed, owner, other_owner
    ) -> None:
        await seed(
            Business(id="biz", owner_id=owner.user_id, business_name="Shop"),
            OrganizationMember(
                business_id="biz",
                user_id=other_owner.user_id,
                accessible_pages=["sales"],
                is_active=False,
            ),
        )
        source = MemberPageGrantSource(async_engine)
        assert await source.overrides_for(other_owner) is None
