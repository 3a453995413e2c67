"""FastAPI dependency injection and shared state."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from fastapi import Depends, HTTPException, Request

from mibuks.access.context import AccessContext, Identity
from mibuks.access.pages import MemberPageGrantSource, NoPageGrants, PageGrantSource
from mibuks.access.profile import ProfileService
from mibuks.access.tenant import TenantResolver
from mibuks.access.tiers import AdminTierResolver, SessionTierCache
from mibuks.audit.logger import ActivityLogger
from mibuks.config.settings import get_settings
from mibuks.exceptions import NotAuthenticatedError
from mibuks.storage.changes import ChangeFeed
from mibuks.storage.rows import RowStore
from mibuks.types import AdminTier
from mibuks.web.auth.session import SessionAuth, require_auth, session_token

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Process-scoped collaborators shared by every request."""

    engine: AsyncEngine
    feed: ChangeFeed
    rows: RowStore
    tenants: TenantResolver
    tiers: AdminTierResolver
    profiles: ProfileService
    activity: ActivityLogger
    page_grants: PageGrantSource
    sessions: SessionAuth


def build_services(engine: AsyncEngine, feed: ChangeFeed | None = None) -> Services:
    settings = get_settings()
    feed = feed if feed is not None else ChangeFeed()
    tier_cache = SessionTierCache()
    sessions = SessionAuth(settings.secret_key, max_age=settings.session_max_age)
    # Tier results live exactly as long as their session.
    sessions.on_destroy(tier_cache.clear)

    tenants = TenantResolver(engine)
    page_grants: PageGrantSource = (
        MemberPageGrantSource(engine) if settings.enforce_page_grants else NoPageGrants()
    )
    return Services(
        engine=engine,
        feed=feed,
        rows=RowStore(engine, feed),
        tenants=tenants,
        tiers=AdminTierResolver(engine, tier_cache),
        profiles=ProfileService(engine, tenants),
        activity=ActivityLogger(engine),
        page_grants=page_grants,
        sessions=sessions,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services  # type: ignore[no-any-return]


async def get_access(
    request: Request,
    identity: Identity = Depends(require_auth),
    services: Services = Depends(get_services),
) -> AccessContext:
    """Resolve tier and business for the caller concurrently."""
    tier, business = await asyncio.gather(
        services.tiers.resolve_for_session(session_token(request), identity),
        services.tenants.get(identity),
    )
    if tier.tier is AdminTier.NONE:
        msg = "Session ended"
        raise NotAuthenticatedError(msg)
    return AccessContext(
        identity=identity,
        tier=tier,
        business_id=business.id if business else None,
    )


async def require_admin_tier(
    access: AccessContext = Depends(get_access),
) -> AccessContext:
    """Require system_admin or ngo_admin."""
    if not access.tier.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return access
