"""Onboarding/profile collaborator."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.exceptions import TransientStorageError
from mibuks.models.database import Business, OrganizationMember, Profile, _utc_now

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from mibuks.access.context import Identity
    from mibuks.access.tenant import TenantResolver
    from mibuks.models.api import OnboardingRequest

logger = structlog.get_logger(__name__)


class ProfileService:
    """Owns the "needs onboarding" signal and the onboarding write."""

    def __init__(self, engine: AsyncEngine, tenants: TenantResolver) -> None:
        self._engine = engine
        self._tenants = tenants

    async def needs_onboarding(self, identity: Identity) -> bool:
        """Owners need a profile and a business; team members never onboard."""
        try:
            async with AsyncSession(self._engine) as session:
                profile_stmt = select(Profile.id).where(col(Profile.user_id) == identity.user_id)
                has_profile = (await session.execute(profile_stmt)).first() is not None

                owner_stmt = select(Business.id).where(
                    col(Business.owner_id) == identity.user_id
                )
                if (await session.execute(owner_stmt)).first() is not None:
                    return not has_profile

                member_stmt = select(OrganizationMember.id).where(
                    col(OrganizationMember.user_id) == identity.user_id,
                    col(OrganizationMember.is_active).is_(True),
                )
                return (await session.execute(member_stmt)).first() is None
        except SQLAlchemyError as exc:
            logger.warning("onboarding_check_failed", user_id=identity.user_id, error=str(exc))
            msg = "Could not load your profile."
            raise TransientStorageError(msg) from exc

    async def complete_onboarding(
        self, identity: Identity, details: OnboardingRequest
    ) -> tuple[Profile, Business]:
        business = await self._tenants.resolve_or_create(identity)
        try:
            async with AsyncSession(self._engine) as session:
                stmt = select(Profile).where(col(Profile.user_id) == identity.user_id)
                profile = (await session.execute(stmt)).scalars().first()
                if profile is None:
                    profile = Profile(user_id=identity.user_id)
                profile.first_name = details.first_name
                profile.last_name = details.last_name
                profile.phone = details.phone
                profile.updated_at = _utc_now()
                session.add(profile)

                owned = await session.get(Business, business.id)
                if owned is None:
                    msg = "Your business disappeared during setup. Please try again."
                    raise TransientStorageError(msg)
                owned.business_name = details.business_name
                owned.business_type = details.business_type or owned.business_type
                owned.address = details.address
                owned.phone = details.business_phone
                owned.email = details.business_email or identity.email or None
                owned.currency = details.currency or owned.currency
                owned.updated_at = _utc_now()
                session.add(owned)

                await session.commit()
                await session.refresh(profile)
                await session.refresh(owned)
        except SQLAlchemyError as exc:
            logger.warning("onboarding_save_failed", user_id=identity.user_id, error=str(exc))
            msg = "Could not save your details. Please try again."
            raise TransientStorageError(msg) from exc

        logger.info("onboarding_completed", user_id=identity.user_id, business_id=owned.id)
        return profile, owned
