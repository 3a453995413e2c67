"""Onboarding route: first-run profile and business details."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from mibuks.access.context import Identity
from mibuks.models.api import OnboardingRequest
from mibuks.web.auth.session import require_auth
from mibuks.web.dependencies import Services, get_services

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


@router.get("")
async def onboarding_status(
    identity: Identity = Depends(require_auth),
    services: Services = Depends(get_services),
) -> dict[str, bool]:
    return {"needs_onboarding": await services.profiles.needs_onboarding(identity)}


@router.post("")
async def complete_onboarding(
    body: OnboardingRequest,
    identity: Identity = Depends(require_auth),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    profile, business = await services.profiles.complete_onboarding(identity, body)
    return {
        "profile": profile.model_dump(mode="json"),
        "business": business.model_dump(mode="json"),
    }
