"""Page access gate: which navigable surfaces a caller may see."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.models.database import Business, OrganizationMember
from mibuks.types import AdminTier, PageKey

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from mibuks.access.context import Identity

logger = structlog.get_logger(__name__)

PAGE_ROUTES: dict[PageKey, str] = {
    PageKey.DASHBOARD: "/",
    PageKey.SALES: "/sales",
    PageKey.INVOICES: "/invoices",
    PageKey.CUSTOMERS: "/customers",
    PageKey.INVENTORY: "/inventory",
    PageKey.SUPPLIERS: "/suppliers",
    PageKey.EXPENSES: "/expenses",
    PageKey.CREDIT: "/credit",
    PageKey.REPORTS: "/reports",
    PageKey.SETTINGS: "/settings",
}

ADMIN_PANEL_ROUTE = "/admin"

_ADMIN_TIERS = frozenset({AdminTier.SYSTEM_ADMIN, AdminTier.NGO_ADMIN})


@dataclass(frozen=True, slots=True)
class PageOverrides:
    """An explicit per-identity grant set.

    ``pages`` is None when the source has nothing to say (or failed);
    ``loading`` is True while the grants are still being fetched.
    """

    pages: frozenset[PageKey] | None = None
    loading: bool = False


PENDING_OVERRIDES = PageOverrides(loading=True)


@dataclass(frozen=True, slots=True)
class MenuItem:
    key: str
    url: str
    title_key: str


def _as_page_key(page_key: str | PageKey) -> PageKey | None:
    try:
        return PageKey(page_key)
    except ValueError:
        return None


def is_page_visible(
    page_key: str | PageKey,
    tier: AdminTier,
    overrides: PageOverrides | None = None,
) -> bool:
    """Return whether a page belongs in the caller's navigation.

    Every enumerated page is visible to every tier unless a loaded override
    narrows it. Overrides that are loading or unavailable fail open; data
    scoping, not this gate, is the security boundary.
    """
    page = _as_page_key(page_key)
    if page is None:
        return False
    if overrides is None or overrides.loading or overrides.pages is None:
        return True
    return page in overrides.pages


def is_admin_panel_visible(tier: AdminTier) -> bool:
    return tier in _ADMIN_TIERS


def visible_menu(tier: AdminTier, overrides: PageOverrides | None = None) -> list[MenuItem]:
    """Build the navigation items, in display order, for a caller."""
    return [
        MenuItem(key=page.value, url=url, title_key=f"nav.{page.value}")
        for page, url in PAGE_ROUTES.items()
        if is_page_visible(page, tier, overrides)
    ]


class PageGrantSource(Protocol):
    async def overrides_for(self, identity: Identity) -> PageOverrides | None: ...


class NoPageGrants:
    """Default source: no per-identity narrowing."""

    async def overrides_for(self, identity: Identity) -> PageOverrides | None:
        return None


class MemberPageGrantSource:
    """Grants from ``organization_members.accessible_pages``.

    Business owners are never narrowed. Team members see only the pages
    listed on their active membership.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def overrides_for(self, identity: Identity) -> PageOverrides | None:
        try:
            async with AsyncSession(self._engine) as session:
                owner_stmt = select(Business.id).where(
                    col(Business.owner_id) == identity.user_id
                )
                if (await session.execute(owner_stmt)).first() is not None:
                    return None

                member_stmt = select(OrganizationMember).where(
                    col(OrganizationMember.user_id) == identity.user_id,
                    col(OrganizationMember.is_active).is_(True),
                )
                member = (await session.execute(member_stmt)).scalars().first()
        except SQLAlchemyError as exc:
            logger.warning("page_grants_unavailable", user_id=identity.user_id, error=str(exc))
            return PageOverrides()

        if member is None:
            return None
        pages = frozenset(
            page for page in (_as_page_key(p) for p in member.accessible_pages or []) if page
        )
        return PageOverrides(pages=pages)
