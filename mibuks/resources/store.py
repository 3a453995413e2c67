"""Tenant-scoped resource store: CRUD plus a live change subscription.

One store instance serves one entity table for one caller. Reads and
mutations go through a scoped table client, which is where row-level
authorization lives; the store itself never filters by business. After
every successful mutation, and on every change notification, the store
refetches the whole list. Results replace the list wholesale, and a
refetch that finishes after a newer one has been applied is dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ValidationError

from mibuks.exceptions import ConfigError, InputValidationError, MiBuksError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from mibuks.access.context import Identity
    from mibuks.access.tenant import TenantResolver
    from mibuks.audit.logger import ActivityLogger
    from mibuks.storage.changes import ChangeEvent
    from mibuks.storage.rows import ScopedTableClient
    from mibuks.types import ErrorKind

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ResourceSpec:
    """Describes one tenant-scoped entity."""

    table: str
    label: str
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]

    @property
    def title(self) -> str:
        return self.label.capitalize()

    @property
    def slug(self) -> str:
        return self.label.replace(" ", "_")


@dataclass(frozen=True, slots=True)
class Notice:
    """A user-facing notification produced by a store operation."""

    title: str
    description: str
    variant: str = "default"  # default | destructive
    kind: ErrorKind | None = None


def _validate(schema: type[BaseModel], data: BaseModel | dict[str, Any]) -> BaseModel:
    if isinstance(data, schema):
        return data
    raw = data.model_dump(exclude_unset=True) if isinstance(data, BaseModel) else data
    try:
        return schema.model_validate(raw)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ())) or "input"
        msg = f"{where}: {first.get('msg', 'invalid value')}"
        raise InputValidationError(msg, errors=[dict(e) for e in errors]) from exc


class ResourceStore:
    def __init__(
        self,
        spec: ResourceSpec,
        client: ScopedTableClient,
        tenants: TenantResolver,
        identity: Identity,
        activity: ActivityLogger | None = None,
    ) -> None:
        if not getattr(client, "enforces_row_scope", False):
            msg = f"Refusing to serve {spec.table} through a client without row scoping"
            raise ConfigError(msg)
        if client.owner_id != identity.user_id:
            msg = f"Client for {spec.table} is scoped to a different identity"
            raise ConfigError(msg)
        self._spec = spec
        self._client = client
        self._tenants = tenants
        self._identity = identity
        self._activity = activity

        self._items: list[dict[str, Any]] = []
        self._loading = True
        self._error: str | None = None
        self._notice: Notice | None = None
        self._issued = 0
        self._applied = 0
        self._closed = False
        self._queue: asyncio.Queue[ChangeEvent | None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._listeners: list[Callable[[list[dict[str, Any]]], None]] = []

    # -- state -------------------------------------------------------------

    @property
    def spec(self) -> ResourceSpec:
        return self._spec

    @property
    def items(self) -> list[dict[str, Any]]:
        return list(self._items)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def last_notice(self) -> Notice | None:
        return self._notice

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscribed(self) -> bool:
        return self._watcher is not None and not self._watcher.done()

    # -- reads ---------------------------------------------------------------

    async def list(self) -> list[dict[str, Any]]:
        """Fetch the caller's rows and make them the current list."""
        self._issued += 1
        ticket = self._issued
        try:
            rows = await self._client.select(self._spec.table)
        except MiBuksError as exc:
            if not self._closed:
                self._error = str(exc)
                self._loading = False
                self._fail(f"Failed to fetch {self._spec.table}", exc)
            raise

        if self._closed:
            logger.debug("resource_result_discarded", table=self._spec.table, ticket=ticket)
            return rows
        if ticket < self._applied:
            logger.debug(
                "resource_stale_refetch_dropped",
                table=self._spec.table,
                ticket=ticket,
                applied=self._applied,
            )
            return self.items

        self._applied = ticket
        self._items = rows
        self._error = None
        self._loading = False
        for listener in self._listeners:
            listener(list(rows))
        return list(rows)

    async def refresh(self) -> None:
        """Refetch, recording rather than raising any failure."""
        try:
            await self.list()
        except MiBuksError as exc:
            logger.warning("resource_refetch_failed", table=self._spec.table, error=str(exc))

    # -- mutations -----------------------------------------------------------

    async def create(self, data: BaseModel | dict[str, Any]) -> dict[str, Any]:
        payload = self._checked(self._spec.create_schema, data).model_dump(exclude_none=True)
        try:
            business = await self._tenants.resolve_or_create(self._identity)
            values = {
                **payload,
                "owner_id": self._identity.user_id,
                "business_id": business.id,
            }
            row = await self._client.insert(self._spec.table, values)
        except MiBuksError as exc:
            self._fail(f"Failed to create {self._spec.label}", exc)
            raise

        self._succeed(f"{self._spec.title} created successfully")
        logger.info(
            "resource_created",
            table=self._spec.table,
            row_id=row["id"],
            business_id=business.id,
        )
        await self._record("created", row["id"], business.id, payload)
        await self.refresh()
        return row

    async def update(self, row_id: str, patch: BaseModel | dict[str, Any]) -> None:
        changes = self._checked(self._spec.update_schema, patch).model_dump(exclude_unset=True)
        if not changes:
            exc = InputValidationError("Nothing to update")
            self._fail(f"Failed to update {self._spec.label}", exc)
            raise exc
        try:
            row = await self._client.update(self._spec.table, row_id, changes)
        except MiBuksError as exc:
            self._fail(f"Failed to update {self._spec.label}", exc)
            raise

        self._succeed(f"{self._spec.title} updated successfully")
        logger.info("resource_updated", table=self._spec.table, row_id=row_id)
        await self._record("updated", row_id, row.get("business_id"), changes)
        await self.refresh()

    async def remove(self, row_id: str) -> None:
        try:
            await self._client.delete(self._spec.table, row_id)
        except MiBuksError as exc:
            self._fail(f"Failed to delete {self._spec.label}", exc)
            raise

        self._succeed(f"{self._spec.title} deleted successfully")
        logger.info("resource_deleted", table=self._spec.table, row_id=row_id)
        await self._record("deleted", row_id, None, {})
        await self.refresh()

    # -- live subscription ---------------------------------------------------

    def add_listener(self, callback: Callable[[list[dict[str, Any]]], None]) -> None:
        """Call ``callback`` with every list that becomes current."""
        self._listeners.append(callback)

    def subscribe(self) -> None:
        """Start refetching on every change to the underlying table."""
        if self._closed:
            msg = f"Store for {self._spec.table} is closed"
            raise ConfigError(msg)
        if self._watcher is not None:
            return
        self._queue = self._client.feed.subscribe(self._spec.table)
        self._watcher = asyncio.create_task(self._watch(self._queue))
        logger.debug("resource_subscribed", table=self._spec.table)

    async def close(self) -> None:
        """Tear down: stop the subscription and discard late results."""
        self._closed = True
        if self._queue is not None:
            self._client.feed.unsubscribe(self._spec.table, self._queue)
            self._queue = None
        if self._watcher is not None:
            self._watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watcher
            self._watcher = None

    async def __aenter__(self) -> ResourceStore:
        self.subscribe()
        await self.refresh()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _watch(self, queue: asyncio.Queue[ChangeEvent | None]) -> None:
        while not self._closed:
            event = await queue.get()
            if event is None:
                break
            # Collapse a burst of notifications into one refetch.
            while not queue.empty():
                if queue.get_nowait() is None:
                    return
            await self.refresh()

    # -- helpers -------------------------------------------------------------

    def _checked(self, schema: type[BaseModel], data: BaseModel | dict[str, Any]) -> BaseModel:
        try:
            return _validate(schema, data)
        except InputValidationError as exc:
            self._fail(f"Invalid {self._spec.label}", exc)
            raise

    def _fail(self, title: str, exc: MiBuksError) -> None:
        self._notice = Notice(
            title=title,
            description=str(exc),
            variant="destructive",
            kind=exc.kind,
        )
        logger.warning(
            "resource_operation_failed",
            table=self._spec.table,
            kind=exc.kind.value,
            error=str(exc),
        )

    def _succeed(self, description: str) -> None:
        self._notice = Notice(title="Success", description=description)

    async def _record(
        self,
        verb: str,
        row_id: str,
        business_id: str | None,
        metadata: dict[str, Any],
    ) -> None:
        if self._activity is None:
            return
        await self._activity.log(
            user_id=self._identity.user_id,
            business_id=business_id,
            action=f"{self._spec.slug}.{verb}",
            entity_type=self._spec.table,
            entity_id=str(row_id),
            metadata=metadata,
        )
