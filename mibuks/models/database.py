"""SQLModel database table models."""

from __future__ import annotations

import time
import uuid
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def _timestamp() -> Any:
    return Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))


def _today() -> date:
    return datetime.now(UTC).date()


def _new_uuid() -> str:
    return str(uuid.uuid4())


def _invoice_number() -> str:
    return f"INV-{int(time.time() * 1000)}"


# ---------------------------------------------------------------------------
# Tenancy and administration
# ---------------------------------------------------------------------------


class Ngo(SQLModel, table=True):
    __tablename__ = "ngos"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    description: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    address: str | None = None
    is_active: bool = Field(default=True)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class Business(SQLModel, table=True):
    __tablename__ = "businesses"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    owner_id: str = Field(unique=True, index=True)
    business_name: str
    business_type: str | None = None
    currency: str | None = None
    ngo_id: str | None = Field(default=None, foreign_key="ngos.id", index=True)
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    tax_rate: float | None = None
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(index=True)
    role: str  # admin | system_admin | user
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class NgoMember(SQLModel, table=True):
    __tablename__ = "ngo_members"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    ngo_id: str = Field(foreign_key="ngos.id", index=True)
    user_id: str = Field(index=True)
    role: str = Field(default="member")  # admin | member
    is_active: bool = Field(default=True)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(unique=True, index=True)
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class OrganizationMember(SQLModel, table=True):
    __tablename__ = "organization_members"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    business_id: str = Field(foreign_key="businesses.id", index=True)
    user_id: str = Field(index=True)
    role: str = Field(default="member")
    display_name: str | None = None
    email: str | None = None
    accessible_pages: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class ActivityLog(SQLModel, table=True):
    __tablename__ = "activity_logs"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(index=True)
    business_id: str | None = Field(default=None, index=True)
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    metadata_json: str | None = None
    created_at: datetime = _timestamp()


# ---------------------------------------------------------------------------
# Tenant-scoped domain entities (every row carries owner_id + business_id)
# ---------------------------------------------------------------------------


class Supplier(SQLModel, table=True):
    __tablename__ = "suppliers"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    business_id: str = Field(foreign_key="businesses.id", index=True)
    name: str
    phone: str | None = None
    location: str | None = None
    product_category: str | None = None
    notes: str | None = None
    current_balance: float = Field(default=0)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    business_id: str = Field(foreign_key="businesses.id", index=True)
    supplier_id: str | None = Field(default=None, foreign_key="suppliers.id")
    description: str
    amount: float
    payment_method: str | None = None
    category: str | None = None
    expense_date: date = Field(default_factory=_today)
    notes: str | None = None
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    business_id: str = Field(foreign_key="businesses.id", index=True)
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    business_type: str | None = None
    birthday: date | None = None
    credit_limit: float | None = None
    current_balance: float = Field(default=0)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class Sale(SQLModel, table=True):
    __tablename__ = "sales"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    business_id: str = Field(foreign_key="businesses.id", index=True)
    customer_id: str | None = Field(default=None, foreign_key="customers.id")
    invoice_id: str | None = None
    sale_date: date = Field(default_factory=_today)
    total_amount: float
    payment_method: str | None = None
    notes: str | None = None
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class InventoryItem(SQLModel, table=True):
    __tablename__ = "inventory"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    business_id: str = Field(foreign_key="businesses.id", index=True)
    name: str
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    category: str | None = None
    supplier: str | None = None
    location: str | None = None
    unit_price: float
    cost_price: float | None = None
    stock_quantity: int = Field(default=0)
    min_stock_level: int | None = None
    is_active: bool = Field(default=True)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class Invoice(SQLModel, table=True):
    __tablename__ = "invoices"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    business_id: str = Field(foreign_key="businesses.id", index=True)
    customer_id: str | None = Field(default=None, foreign_key="customers.id")
    invoice_number: str = Field(default_factory=_invoice_number)
    invoice_date: date = Field(default_factory=_today)
    due_date: date | None = None
    # Line items: product_id, product_name, quantity, unit_price, total_price
    items: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    subtotal: float = Field(default=0)
    tax_amount: float = Field(default=0)
    total_amount: float = Field(default=0)
    paid_amount: float = Field(default=0)
    status: str = Field(default="draft")
    notes: str | None = None
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()
