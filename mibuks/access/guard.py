"""Route guard consulted on every navigation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from mibuks.exceptions import TransientStorageError
from mibuks.types import AdminTier, GuardAction

if TYPE_CHECKING:
    from mibuks.access.context import Identity
    from mibuks.access.profile import ProfileService
    from mibuks.access.tiers import AdminTierResolver

logger = structlog.get_logger(__name__)

SIGN_IN_PATH = "/auth"
ONBOARDING_PATH = "/onboarding"
HOME_PATH = "/"

_ONBOARDING_EXEMPT = frozenset({AdminTier.SYSTEM_ADMIN, AdminTier.NGO_ADMIN})


@dataclass(frozen=True, slots=True)
class GuardState:
    path: str
    identity: Identity | None
    tier: AdminTier = AdminTier.NONE
    needs_onboarding: bool = False
    loading: bool = False


@dataclass(frozen=True, slots=True)
class GuardDecision:
    action: GuardAction
    location: str | None = None

    @classmethod
    def redirect(cls, location: str) -> GuardDecision:
        return cls(action=GuardAction.REDIRECT, location=location)


ALLOW = GuardDecision(action=GuardAction.ALLOW)
LOADING = GuardDecision(action=GuardAction.LOADING)


def _normalize(path: str) -> str:
    if len(path) > 1:
        return path.rstrip("/") or HOME_PATH
    return path or HOME_PATH


def decide(state: GuardState) -> GuardDecision:
    """Evaluate the navigation rules top to bottom; the first match wins."""
    if state.loading:
        return LOADING
    if state.identity is None:
        return GuardDecision.redirect(SIGN_IN_PATH)

    if state.tier not in _ONBOARDING_EXEMPT:
        on_onboarding = _normalize(state.path) == ONBOARDING_PATH
        if state.needs_onboarding and not on_onboarding:
            return GuardDecision.redirect(ONBOARDING_PATH)
        if not state.needs_onboarding and on_onboarding:
            return GuardDecision.redirect(HOME_PATH)

    return ALLOW


async def evaluate(
    path: str,
    identity: Identity | None,
    session_token: str,
    tiers: AdminTierResolver,
    profiles: ProfileService,
) -> GuardDecision:
    """Gather the guard inputs concurrently, then decide.

    An onboarding signal that cannot be read leaves the navigation in the
    loading state rather than redirecting on a guess.
    """
    if identity is None:
        return decide(GuardState(path=path, identity=None))

    tier_result, onboarding_result = await asyncio.gather(
        tiers.resolve_for_session(session_token, identity),
        profiles.needs_onboarding(identity),
        return_exceptions=True,
    )
    if isinstance(tier_result, BaseException):
        raise tier_result
    if isinstance(onboarding_result, TransientStorageError):
        logger.warning("guard_onboarding_unavailable", user_id=identity.user_id)
        return decide(GuardState(path=path, identity=identity, loading=True))
    if isinstance(onboarding_result, BaseException):
        raise onboarding_result

    if tier_result.tier is AdminTier.NONE:
        # Session ended while the tier was resolving.
        return decide(GuardState(path=path, identity=None))

    return decide(
        GuardState(
            path=path,
            identity=identity,
            tier=tier_result.tier,
            needs_onboarding=onboarding_result,
        )
    )
