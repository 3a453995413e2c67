"""Enums and type aliases for MiBuks."""

from enum import StrEnum


class AdminTier(StrEnum):
    SYSTEM_ADMIN = "system_admin"
    NGO_ADMIN = "ngo_admin"
    TENANT_OWNER = "tenant_owner"
    NONE = "none"


class PageKey(StrEnum):
    DASHBOARD = "dashboard"
    SALES = "sales"
    INVOICES = "invoices"
    CUSTOMERS = "customers"
    INVENTORY = "inventory"
    SUPPLIERS = "suppliers"
    EXPENSES = "expenses"
    CREDIT = "credit"
    REPORTS = "reports"
    SETTINGS = "settings"


class ErrorKind(StrEnum):
    NOT_AUTHENTICATED = "not_authenticated"
    TENANT_CONFLICT = "tenant_conflict"
    TRANSIENT_STORAGE = "transient_storage"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"


class ChangeOp(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class PaymentMethod(StrEnum):
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    CREDIT = "credit"


class GuardAction(StrEnum):
    LOADING = "loading"
    REDIRECT = "redirect"
    ALLOW = "allow"


class InvoiceStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
