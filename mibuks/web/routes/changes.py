"""SSE endpoint streaming live resource lists."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from mibuks.access.context import Identity
from mibuks.resources.entities import get_spec, open_store
from mibuks.web.auth.session import require_auth
from mibuks.web.dependencies import Services, get_services

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/changes", tags=["changes"])

_HEARTBEAT_INTERVAL = 15.0  # seconds


def _snapshot_to_sse(resource: str, rows: list[dict[str, Any]]) -> str:
    payload = json.dumps({"resource": resource, "rows": rows}, default=str)
    return f"event: snapshot\ndata: {payload}\n\n"


@router.get("/{resource}")
async def resource_change_stream(
    resource: str,
    request: Request,
    identity: Identity = Depends(require_auth),
    services: Services = Depends(get_services),
) -> StreamingResponse:
    """Stream the caller's rows, re-sent whenever the table changes."""
    get_spec(resource)
    store = open_store(resource, identity, services.rows, services.tenants)

    async def event_generator() -> AsyncGenerator[str, None]:
        snapshots: asyncio.Queue[list[dict[str, Any]]] = asyncio.Queue()
        store.add_listener(snapshots.put_nowait)
        logger.info("sse_client_connected", resource=resource, user_id=identity.user_id)
        last_sent: list[dict[str, Any]] | None = None

        try:
            async with store:
                while True:
                    if await request.is_disconnected():
                        break
                    try:
                        rows = await asyncio.wait_for(snapshots.get(), timeout=_HEARTBEAT_INTERVAL)
                    except TimeoutError:
                        yield ": heartbeat\n\n"
                        continue
                    # Changes in other businesses refetch an identical list.
                    if rows == last_sent:
                        continue
                    last_sent = rows
                    yield _snapshot_to_sse(resource, rows)
        finally:
            logger.info("sse_stream_closed", resource=resource, user_id=identity.user_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
