"""Admin panel routes for system and NGO administrators."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.access.context import AccessContext
from mibuks.exceptions import TransientStorageError
from mibuks.models.database import Business
from mibuks.types import AdminTier
from mibuks.web.dependencies import Services, get_services, require_admin_tier

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/businesses")
async def list_businesses(
    access: AccessContext = Depends(require_admin_tier),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    """System admins see every business; NGO admins see their NGO's."""
    stmt = select(Business).order_by(col(Business.created_at).desc())
    if access.tier.tier is AdminTier.NGO_ADMIN:
        stmt = stmt.where(col(Business.ngo_id) == access.tier.ngo_id)
    try:
        async with AsyncSession(services.engine) as session:
            result = await session.execute(stmt)
            return [b.model_dump(mode="json") for b in result.scalars().all()]
    except SQLAlchemyError as exc:
        logger.warning("admin_business_list_failed", error=str(exc))
        msg = "Could not load businesses. Please try again."
        raise TransientStorageError(msg) from exc
