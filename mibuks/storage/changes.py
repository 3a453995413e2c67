"""Per-table change notification feed."""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass

import structlog

from mibuks.types import ChangeOp

logger = structlog.get_logger(__name__)


@dataclass
class ChangeEvent:
    """A committed row change on one table."""

    table: str
    op: ChangeOp
    row_id: str
    business_id: str | None = None
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        if self.timestamp == 0.0:
            self.timestamp = time.monotonic()


class ChangeFeed:
    """In-process fan-out of row changes keyed by table name.

    Designed for a single asyncio event loop. Subscribers each get their
    own queue; a ``None`` item tells a subscriber to stop.
    """

    def __init__(self) -> None:
        self._queues: dict[str, list[asyncio.Queue[ChangeEvent | None]]] = {}

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every subscriber of its table.

        Safe to call from a non-async context (put_nowait does not await).
        """
        queues = self._queues.get(event.table, [])
        for q in queues:
            q.put_nowait(event)
        logger.debug(
            "change_published",
            table=event.table,
            op=event.op.value,
            row_id=event.row_id,
            subscribers=len(queues),
        )

    def subscribe(self, table: str) -> asyncio.Queue[ChangeEvent | None]:
        """Register a new subscriber queue for a table."""
        q: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self._queues.setdefault(table, []).append(q)
        return q

    def unsubscribe(self, table: str, q: asyncio.Queue[ChangeEvent | None]) -> None:
        """Remove a subscriber queue."""
        queues = self._queues.get(table, [])
        with contextlib.suppress(ValueError):
            queues.remove(q)
        if not queues and table in self._queues:
            del self._queues[table]

    def subscriber_count(self, table: str) -> int:
        return len(self._queues.get(table, []))

    def close(self) -> None:
        """Wake every subscriber with the stop sentinel and forget them."""
        for queues in self._queues.values():
            for q in queues:
                q.put_nowait(None)
        self._queues.clear()


# Module-level singleton
change_feed = ChangeFeed()
