"""Access routes: tier, navigation menu and route guard decisions."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, Request

from mibuks.access.context import AccessContext
from mibuks.access.guard import evaluate
from mibuks.access.pages import is_admin_panel_visible, visible_menu
from mibuks.models.api import (
    AccessResponse,
    GuardResponse,
    MenuItemResponse,
    NavigationResponse,
)
from mibuks.web.auth.session import current_identity, session_token
from mibuks.web.dependencies import Services, get_access, get_services

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["access"])


@router.get("/access", response_model=AccessResponse)
async def access_info(access: AccessContext = Depends(get_access)) -> AccessResponse:
    return AccessResponse(
        user_id=access.identity.user_id,
        email=access.identity.email,
        tier=access.tier.tier.value,
        ngo_id=access.tier.ngo_id,
        business_id=access.business_id,
    )


@router.get("/navigation", response_model=NavigationResponse)
async def navigation(
    access: AccessContext = Depends(get_access),
    services: Services = Depends(get_services),
) -> NavigationResponse:
    overrides = await services.page_grants.overrides_for(access.identity)
    items = visible_menu(access.tier.tier, overrides)
    return NavigationResponse(
        items=[MenuItemResponse(key=i.key, url=i.url, title_key=i.title_key) for i in items],
        admin_panel=is_admin_panel_visible(access.tier.tier),
    )


@router.get("/guard", response_model=GuardResponse)
async def guard(
    request: Request,
    path: str = Query(default="/", max_length=2048),
    services: Services = Depends(get_services),
) -> GuardResponse:
    """Decide what a navigation to ``path`` should do. Public: unauthenticated
    callers receive a redirect to sign-in rather than a 401."""
    decision = await evaluate(
        path,
        current_identity(request),
        session_token(request),
        services.tiers,
        services.profiles,
    )
    logger.debug("guard_decision", path=path, action=decision.action.value)
    return GuardResponse(action=decision.action.value, location=decision.location)
