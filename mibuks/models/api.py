"""API request/response schemas for FastAPI endpoints."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, computed_field

from mibuks.types import InvoiceStatus, PaymentMethod

INVOICE_TAX_RATE = 0.15


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# ---------------------------------------------------------------------------
# Auth and onboarding
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)


class OnboardingRequest(_Input):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = None
    business_name: str = Field(min_length=1, max_length=200)
    business_type: str | None = None
    address: str | None = None
    business_phone: str | None = None
    business_email: str | None = None
    currency: str | None = Field(default=None, max_length=8)


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------


class SupplierCreate(_Input):
    name: str = Field(min_length=1, max_length=200)
    phone: str | None = None
    location: str | None = None
    product_category: str | None = None
    notes: str | None = None


class SupplierUpdate(_Input):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    phone: str | None = None
    location: str | None = None
    product_category: str | None = None
    notes: str | None = None
    current_balance: float | None = None


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


class ExpenseCreate(_Input):
    supplier_id: str | None = None
    description: str = Field(min_length=1, max_length=500)
    amount: float = Field(gt=0)
    payment_method: PaymentMethod
    category: str | None = None
    expense_date: date | None = None
    notes: str | None = None


class ExpenseUpdate(_Input):
    supplier_id: str | None = None
    description: str | None = Field(default=None, min_length=1, max_length=500)
    amount: float | None = Field(default=None, gt=0)
    payment_method: PaymentMethod | None = None
    category: str | None = None
    expense_date: date | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


class SaleCreate(_Input):
    customer_id: str | None = None
    invoice_id: str | None = None
    total_amount: float = Field(ge=0)
    payment_method: PaymentMethod
    notes: str | None = None
    sale_date: date | None = None


class SaleUpdate(_Input):
    customer_id: str | None = None
    total_amount: float | None = Field(default=None, ge=0)
    payment_method: PaymentMethod | None = None
    notes: str | None = None
    sale_date: date | None = None


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


class CustomerCreate(_Input):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    business_type: str | None = None
    birthday: date | None = None
    credit_limit: float | None = Field(default=None, ge=0)


class CustomerUpdate(_Input):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    business_type: str | None = None
    birthday: date | None = None
    credit_limit: float | None = Field(default=None, ge=0)
    current_balance: float | None = None


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


class InventoryCreate(_Input):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    category: str | None = None
    supplier: str | None = None
    location: str | None = None
    unit_price: float = Field(ge=0)
    cost_price: float | None = Field(default=None, ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    min_stock_level: int | None = Field(default=None, ge=0)


class InventoryUpdate(_Input):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    category: str | None = None
    supplier: str | None = None
    location: str | None = None
    unit_price: float | None = Field(default=None, ge=0)
    cost_price: float | None = Field(default=None, ge=0)
    stock_quantity: int | None = Field(default=None, ge=0)
    min_stock_level: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


class InvoiceLine(_Input):
    product_id: str | None = None
    product_name: str = Field(min_length=1, max_length=200)
    quantity: float = Field(gt=0)
    unit_price: float = Field(ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_price(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class InvoiceCreate(_Input):
    """Totals are derived from the line items; callers cannot set them."""

    customer_id: str | None = None
    due_date: date | None = None
    notes: str | None = None
    items: list[InvoiceLine] = Field(min_length=1)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subtotal(self) -> float:
        return round(sum(line.total_price for line in self.items), 2)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def tax_amount(self) -> float:
        return round(self.subtotal * INVOICE_TAX_RATE, 2)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_amount(self) -> float:
        return round(self.subtotal + self.tax_amount, 2)


class InvoiceUpdate(_Input):
    customer_id: str | None = None
    due_date: date | None = None
    status: InvoiceStatus | None = None
    paid_amount: float | None = Field(default=None, ge=0)
    notes: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class AccessResponse(BaseModel):
    user_id: str
    email: str
    tier: str
    ngo_id: str | None = None
    business_id: str | None = None


class MenuItemResponse(BaseModel):
    key: str
    url: str
    title_key: str


class NavigationResponse(BaseModel):
    items: list[MenuItemResponse]
    admin_panel: bool


class GuardResponse(BaseModel):
    action: str
    location: str | None = None
