"""Tenant (business) resolution with lazy provisioning."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.config.settings import get_settings
from mibuks.exceptions import TenantProvisioningConflict, TransientStorageError
from mibuks.models.database import Business

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from mibuks.access.context import Identity

logger = structlog.get_logger(__name__)


class TenantResolver:
    """Finds the business owned by an identity, creating it on first need.

    At most one business exists per owner: the UNIQUE constraint on
    ``businesses.owner_id`` rejects a racing insert, and the loser re-reads
    the winner's row instead of reporting an error.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get(self, identity: Identity) -> Business | None:
        """Return the caller's business without creating one."""
        try:
            async with AsyncSession(self._engine) as session:
                stmt = select(Business).where(col(Business.owner_id) == identity.user_id)
                result = await session.execute(stmt)
                return result.scalars().first()
        except SQLAlchemyError as exc:
            logger.warning("tenant_lookup_failed", user_id=identity.user_id, error=str(exc))
            msg = "Could not load your business. Please try again."
            raise TransientStorageError(msg) from exc

    async def resolve_or_create(self, identity: Identity) -> Business:
        existing = await self.get(identity)
        if existing is not None:
            return existing

        try:
            return await self._create(identity)
        except TenantProvisioningConflict:
            logger.info("tenant_create_conflict", user_id=identity.user_id)

        winner = await self.get(identity)
        if winner is None:
            msg = "Could not set up your business. Please try again."
            raise TransientStorageError(msg)
        return winner

    async def _create(self, identity: Identity) -> Business:
        settings = get_settings()
        business = Business(
            owner_id=identity.user_id,
            business_name=settings.default_business_name,
            business_type=settings.default_business_type,
            currency=settings.default_currency,
        )
        try:
            async with AsyncSession(self._engine) as session:
                session.add(business)
                await session.commit()
                await session.refresh(business)
        except IntegrityError as exc:
            raise TenantProvisioningConflict(str(exc)) from exc
        except SQLAlchemyError as exc:
            logger.warning("tenant_create_failed", user_id=identity.user_id, error=str(exc))
            msg = "Could not set up your business. Please try again."
            raise TransientStorageError(msg) from exc

        logger.info("tenant_created", business_id=business.id, owner_id=identity.user_id)
        return business
