"""Activity logger: insert-only trail of tenant data changes.

Uses its own DB session so a failed log write never affects the change
being recorded. Metadata is sanitized (sensitive fields stripped, 10KB max).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.models.database import ActivityLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "authorization",
        "cookie",
        "session",
    }
)

_MAX_METADATA_BYTES = 10_240  # 10KB


def _sanitize_metadata(metadata: dict[str, Any]) -> str:
    sanitized = {k: v for k, v in metadata.items() if k.lower() not in _SENSITIVE_FIELDS}
    encoded = json.dumps(sanitized, default=str)
    if len(encoded) > _MAX_METADATA_BYTES:
        encoded = encoded[:_MAX_METADATA_BYTES]
    return encoded


class ActivityLogger:
    """Writes ``activity_logs`` rows for store mutations."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def log(
        self,
        *,
        user_id: str,
        action: str,
        business_id: str | None = None,
        entity_type: str = "",
        entity_id: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        entry = ActivityLog(
            user_id=user_id,
            business_id=business_id,
            action=action,
            entity_type=entity_type or None,
            entity_id=entity_id or None,
            metadata_json=_sanitize_metadata(metadata or {}),
        )
        try:
            async with AsyncSession(self._engine) as session:
                session.add(entry)
                await session.commit()
        except SQLAlchemyError:
            # The mutation already succeeded; losing its log entry is not fatal.
            logger.exception("activity_log_failed", action=action, user_id=user_id)
