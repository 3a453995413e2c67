"""Administrative tier resolution with a per-session cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.access.context import NO_TIER, TENANT_OWNER, TierInfo
from mibuks.exceptions import TransientStorageError
from mibuks.models.database import NgoMember, UserRole
from mibuks.types import AdminTier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from mibuks.access.context import Identity

logger = structlog.get_logger(__name__)

SYSTEM_ROLES = ("admin", "system_admin")
NGO_ADMIN_ROLE = "admin"

_DEAD_EPOCH = 0
_MAX_ENDED_TOKENS = 10_000


class SessionTierCache:
    """Tier results keyed by session token.

    Entries live until sign-out. A resolution started before a sign-out
    carries a stale epoch and is refused by ``store``. Cleared tokens are
    remembered, so a resolution that starts after sign-out is refused too;
    session tokens are never reissued.
    """

    def __init__(self) -> None:
        self._entries: dict[str, TierInfo] = {}
        self._epochs: dict[str, int] = {}
        self._ended: dict[str, None] = {}
        self._next_epoch = 0

    def get(self, token: str) -> TierInfo | None:
        return self._entries.get(token)

    def begin(self, token: str) -> int:
        """Mark the start of a resolution and return its epoch."""
        if token in self._ended:
            return _DEAD_EPOCH
        if token not in self._epochs:
            self._next_epoch += 1
            self._epochs[token] = self._next_epoch
        return self._epochs[token]

    def store(self, token: str, epoch: int, info: TierInfo) -> bool:
        """Cache a result unless the session ended since ``begin``."""
        if token in self._ended or self._epochs.get(token) != epoch:
            return False
        self._entries[token] = info
        return True

    def clear(self, token: str) -> None:
        self._entries.pop(token, None)
        self._epochs.pop(token, None)
        self._ended[token] = None
        if len(self._ended) > _MAX_ENDED_TOKENS:
            del self._ended[next(iter(self._ended))]


class AdminTierResolver:
    """Classifies a caller as system_admin, ngo_admin or tenant_owner.

    Role grants are checked first and short-circuit, so a caller who is
    both a system admin and an NGO admin is always a system admin. The
    NGO membership query runs only when the role check misses.
    """

    def __init__(self, engine: AsyncEngine, cache: SessionTierCache | None = None) -> None:
        self._engine = engine
        self._cache = cache if cache is not None else SessionTierCache()

    @property
    def cache(self) -> SessionTierCache:
        return self._cache

    async def resolve(self, identity: Identity | None) -> TierInfo:
        if identity is None:
            return NO_TIER
        try:
            return await self._classify(identity.user_id)
        except TransientStorageError:
            return TENANT_OWNER

    async def resolve_for_session(self, token: str, identity: Identity | None) -> TierInfo:
        """Resolve once per session; later calls hit the cache."""
        if identity is None:
            return NO_TIER
        cached = self._cache.get(token)
        if cached is not None:
            return cached

        epoch = self._cache.begin(token)
        if epoch == _DEAD_EPOCH:
            logger.info("tier_resolution_discarded", user_id=identity.user_id)
            return NO_TIER
        try:
            info = await self._classify(identity.user_id)
        except TransientStorageError:
            # Not cached, so the next navigation retries.
            return TENANT_OWNER

        if not self._cache.store(token, epoch, info):
            logger.info("tier_resolution_discarded", user_id=identity.user_id)
            return NO_TIER
        return info

    async def _classify(self, user_id: str) -> TierInfo:
        try:
            async with AsyncSession(self._engine) as session:
                role_stmt = (
                    select(UserRole.role)
                    .where(
                        col(UserRole.user_id) == user_id,
                        col(UserRole.role).in_(SYSTEM_ROLES),
                    )
                    .limit(1)
                )
                role_result = await session.execute(role_stmt)
                if role_result.first() is not None:
                    logger.debug("tier_resolved", user_id=user_id, tier="system_admin")
                    return TierInfo(tier=AdminTier.SYSTEM_ADMIN)

                ngo_stmt = (
                    select(NgoMember)
                    .where(
                        col(NgoMember.user_id) == user_id,
                        col(NgoMember.role) == NGO_ADMIN_ROLE,
                        col(NgoMember.is_active).is_(True),
                    )
                    .order_by(col(NgoMember.created_at))
                    .limit(1)
                )
                ngo_result = await session.execute(ngo_stmt)
                membership = ngo_result.scalars().first()
        except SQLAlchemyError as exc:
            logger.warning("tier_resolution_failed", user_id=user_id, error=str(exc))
            msg = "Could not check administrator access."
            raise TransientStorageError(msg) from exc

        if membership is not None:
            logger.debug("tier_resolved", user_id=user_id, tier="ngo_admin")
            return TierInfo(tier=AdminTier.NGO_ADMIN, ngo_id=membership.ngo_id)

        logger.debug("tier_resolved", user_id=user_id, tier="tenant_owner")
        return TENANT_OWNER
