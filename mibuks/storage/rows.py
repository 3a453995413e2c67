"""Row-oriented table access scoped to the caller's business.

The scoped client is the row-level authorization boundary: every select,
update and delete is filtered to rows whose ``business_id`` belongs to a
business owned by the bound identity, and every insert is checked against
the same rule. Resource stores rely on this and never add business filters
of their own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from mibuks.exceptions import (
    InputValidationError,
    RecordNotFoundError,
    ScopeViolationError,
    TransientStorageError,
)
from mibuks.models.database import (
    Business,
    Customer,
    Expense,
    InventoryItem,
    Invoice,
    Sale,
    Supplier,
    _utc_now,
)
from mibuks.storage.changes import ChangeEvent, ChangeFeed, change_feed
from mibuks.types import ChangeOp

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

TABLE_MODELS: dict[str, type[SQLModel]] = {
    "suppliers": Supplier,
    "expenses": Expense,
    "sales": Sale,
    "customers": Customer,
    "inventory": InventoryItem,
    "invoices": Invoice,
}

_PROTECTED_COLUMNS = frozenset({"id", "owner_id", "business_id", "created_at"})


def _model_for(table: str) -> type[SQLModel]:
    try:
        return TABLE_MODELS[table]
    except KeyError:
        msg = f"Unknown table: {table}"
        raise InputValidationError(msg) from None


def _to_row(instance: SQLModel) -> dict[str, Any]:
    return instance.model_dump(mode="json")


class RowStore:
    """Entry point of the storage collaborator.

    Hands out clients bound to one identity; unscoped access to the
    tenant tables is not offered.
    """

    def __init__(self, engine: AsyncEngine, feed: ChangeFeed | None = None) -> None:
        self._engine = engine
        self._feed = feed if feed is not None else change_feed

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    def scoped(self, owner_id: str) -> ScopedTableClient:
        return ScopedTableClient(self._engine, self._feed, owner_id)


class ScopedTableClient:
    """Table client whose every query is confined to one owner's business."""

    enforces_row_scope = True

    def __init__(self, engine: AsyncEngine, feed: ChangeFeed, owner_id: str) -> None:
        if not owner_id:
            msg = "A scoped client requires an owner identity"
            raise ScopeViolationError(msg)
        self._engine = engine
        self._feed = feed
        self._owner_id = owner_id

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    def _owned_business_ids(self) -> Any:
        return (
            select(Business.id).where(col(Business.owner_id) == self._owner_id).scalar_subquery()
        )

    async def select(self, table: str, *, newest_first: bool = True) -> list[dict[str, Any]]:
        model = _model_for(table)
        created = col(model.created_at)  # type: ignore[attr-defined]
        stmt = (
            select(model)
            .where(col(model.business_id) == self._owned_business_ids())  # type: ignore[attr-defined]
            .order_by(created.desc() if newest_first else created.asc())
        )
        try:
            async with AsyncSession(self._engine) as session:
                result = await session.execute(stmt)
                return [_to_row(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.warning("rows_select_failed", table=table, error=str(exc))
            msg = f"Could not load {table}. Please try again."
            raise TransientStorageError(msg) from exc

    async def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        model = _model_for(table)
        if values.get("owner_id") != self._owner_id:
            msg = f"Rows in {table} must be owned by the caller"
            raise ScopeViolationError(msg)
        try:
            async with AsyncSession(self._engine) as session:
                business_id = values.get("business_id")
                business = await session.get(Business, business_id) if business_id else None
                if business is None or business.owner_id != self._owner_id:
                    msg = f"Rows in {table} must belong to the caller's business"
                    raise ScopeViolationError(msg)
                instance = model(**values)
                session.add(instance)
                await session.commit()
                await session.refresh(instance)
                row = _to_row(instance)
        except SQLAlchemyError as exc:
            logger.warning("rows_insert_failed", table=table, error=str(exc))
            msg = f"Could not save to {table}. Please try again."
            raise TransientStorageError(msg) from exc

        self._publish(table, ChangeOp.INSERT, row)
        return row

    async def update(self, table: str, row_id: str, values: dict[str, Any]) -> dict[str, Any]:
        model = _model_for(table)
        blocked = _PROTECTED_COLUMNS.intersection(values)
        if blocked:
            msg = f"Cannot modify {', '.join(sorted(blocked))}"
            raise InputValidationError(msg)
        unknown = set(values) - set(model.model_fields)
        if unknown:
            msg = f"Unknown fields for {table}: {', '.join(sorted(unknown))}"
            raise InputValidationError(msg)
        columns = model.__table__.columns  # type: ignore[attr-defined]
        cleared = sorted(k for k, v in values.items() if v is None and not columns[k].nullable)
        if cleared:
            msg = f"{', '.join(cleared)} cannot be empty"
            errors = [{"loc": [k], "msg": "Field cannot be null", "type": "null"} for k in cleared]
            raise InputValidationError(msg, errors=errors)
        try:
            async with AsyncSession(self._engine) as session:
                instance = await self._get_scoped(session, model, row_id)
                for key, value in values.items():
                    setattr(instance, key, value)
                instance.updated_at = _utc_now()  # type: ignore[attr-defined]
                session.add(instance)
                await session.commit()
                await session.refresh(instance)
                row = _to_row(instance)
        except SQLAlchemyError as exc:
            logger.warning("rows_update_failed", table=table, row_id=row_id, error=str(exc))
            msg = f"Could not update {table}. Please try again."
            raise TransientStorageError(msg) from exc

        self._publish(table, ChangeOp.UPDATE, row)
        return row

    async def delete(self, table: str, row_id: str) -> None:
        model = _model_for(table)
        try:
            async with AsyncSession(self._engine) as session:
                instance = await self._get_scoped(session, model, row_id)
                row = _to_row(instance)
                await session.delete(instance)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("rows_delete_failed", table=table, row_id=row_id, error=str(exc))
            msg = f"Could not delete from {table}. Please try again."
            raise TransientStorageError(msg) from exc

        self._publish(table, ChangeOp.DELETE, row)

    async def _get_scoped(
        self, session: AsyncSession, model: type[SQLModel], row_id: str
    ) -> Any:
        stmt = select(model).where(
            col(model.id) == row_id,  # type: ignore[attr-defined]
            col(model.business_id) == self._owned_business_ids(),  # type: ignore[attr-defined]
        )
        result = await session.execute(stmt)
        instance = result.scalars().first()
        if instance is None:
            msg = f"No such record: {row_id}"
            raise RecordNotFoundError(msg)
        return instance

    def _publish(self, table: str, op: ChangeOp, row: dict[str, Any]) -> None:
        self._feed.publish(
            ChangeEvent(
                table=table,
                op=op,
                row_id=str(row["id"]),
                business_id=row.get("business_id"),
            )
        )
