"""Tenant-scoped CRUD routes for every registered resource."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response

from mibuks.access.context import Identity
from mibuks.resources.entities import open_store
from mibuks.resources.store import ResourceStore
from mibuks.web.auth.session import require_auth
from mibuks.web.dependencies import Services, get_services

router = APIRouter(prefix="/api", tags=["resources"])


def _store(
    resource: str,
    identity: Identity = Depends(require_auth),
    services: Services = Depends(get_services),
) -> ResourceStore:
    return open_store(resource, identity, services.rows, services.tenants, services.activity)


@router.get("/{resource}")
async def list_resource(store: ResourceStore = Depends(_store)) -> list[dict[str, Any]]:
    return await store.list()


@router.post("/{resource}", status_code=201)
async def create_resource(
    body: dict[str, Any] = Body(...),
    store: ResourceStore = Depends(_store),
) -> dict[str, Any]:
    return await store.create(body)


@router.patch("/{resource}/{row_id}")
async def update_resource(
    row_id: str,
    body: dict[str, Any] = Body(...),
    store: ResourceStore = Depends(_store),
) -> Response:
    await store.update(row_id, body)
    return Response(status_code=204)


@router.delete("/{resource}/{row_id}")
async def delete_resource(
    row_id: str,
    store: ResourceStore = Depends(_store),
) -> Response:
    await store.remove(row_id)
    return Response(status_code=204)
