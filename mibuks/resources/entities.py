"""Tenant-scoped entities served through ResourceStore."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mibuks.exceptions import RecordNotFoundError
from mibuks.models.api import (
    CustomerCreate,
    CustomerUpdate,
    ExpenseCreate,
    ExpenseUpdate,
    InventoryCreate,
    InventoryUpdate,
    InvoiceCreate,
    InvoiceUpdate,
    SaleCreate,
    SaleUpdate,
    SupplierCreate,
    SupplierUpdate,
)
from mibuks.resources.store import ResourceSpec, ResourceStore

if TYPE_CHECKING:
    from mibuks.access.context import Identity
    from mibuks.access.tenant import TenantResolver
    from mibuks.audit.logger import ActivityLogger
    from mibuks.storage.rows import RowStore

SUPPLIERS = ResourceSpec("suppliers", "supplier", SupplierCreate, SupplierUpdate)
EXPENSES = ResourceSpec("expenses", "expense", ExpenseCreate, ExpenseUpdate)
SALES = ResourceSpec("sales", "sale", SaleCreate, SaleUpdate)
CUSTOMERS = ResourceSpec("customers", "customer", CustomerCreate, CustomerUpdate)
INVENTORY = ResourceSpec("inventory", "inventory item", InventoryCreate, InventoryUpdate)
INVOICES = ResourceSpec("invoices", "invoice", InvoiceCreate, InvoiceUpdate)

RESOURCES: dict[str, ResourceSpec] = {
    spec.table: spec for spec in (SUPPLIERS, EXPENSES, SALES, CUSTOMERS, INVENTORY, INVOICES)
}


def get_spec(resource: str) -> ResourceSpec:
    try:
        return RESOURCES[resource]
    except KeyError:
        msg = f"Unknown resource: {resource}"
        raise RecordNotFoundError(msg) from None


def open_store(
    resource: str,
    identity: Identity,
    rows: RowStore,
    tenants: TenantResolver,
    activity: ActivityLogger | None = None,
) -> ResourceStore:
    """Build a store for one entity, scoped to ``identity``."""
    return ResourceStore(
        get_spec(resource),
        rows.scoped(identity.user_id),
        tenants,
        identity,
        activity=activity,
    )
