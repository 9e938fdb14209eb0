"""
Domain DTOs -- frozen data carriers crossing the service boundary.

Services accept the *Input classes and return the *Info / *Record classes,
never ORM entities.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_kernel.domain.values import InvoiceType, PaymentStatus, PriceType


@dataclass(frozen=True)
class InvoiceItemInput:
    """One proposed invoice line."""

    product_id: str
    quantity: int
    price_type: PriceType | str = PriceType.RETAIL
    is_private_price: bool = False
    private_price_amount: Decimal | str | int | None = None
    private_price_note: str | None = None


@dataclass(frozen=True)
class CatalogPrice:
    """Retail/wholesale pair in effect for a product on a date."""

    product_id: str
    retail_price: Decimal
    wholesale_price: Decimal
    effective_date: str

    def for_type(self, price_type: PriceType) -> Decimal:
        if price_type == PriceType.WHOLESALE:
            return self.wholesale_price
        return self.retail_price


@dataclass(frozen=True)
class StockSnapshot:
    """DailyStock state for one (product, date)."""

    product_id: str
    date: str
    available_qty: int
    avg_cost: Decimal
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class MovementRecord:
    """One appended StockMovement."""

    id: str
    product_id: str
    invoice_id: str | None
    invoice_date: str
    quantity_before: int
    quantity_change: int
    quantity_after: int
    unit_cost: Decimal | None
    created_at: str


@dataclass(frozen=True)
class InvoiceLineInfo:
    id: str
    line_no: int
    product_id: str
    quantity: int
    price_type: PriceType
    unit_price: Decimal
    total_price: Decimal
    is_private_price: bool
    private_price_amount: Decimal | None
    private_price_note: str | None


@dataclass(frozen=True)
class PaymentInfo:
    id: str
    invoice_id: str
    payment_amount: Decimal
    payment_date: str
    payment_method: str | None
    notes: str | None


@dataclass(frozen=True)
class InvoiceInfo:
    """Invoice header with its lines, payments and derived balance."""

    id: str
    invoice_type: InvoiceType
    customer_id: str | None
    supplier_id: str | None
    invoice_date: str
    due_date: str | None
    total_amount: Decimal
    amount_paid: Decimal
    payment_status: PaymentStatus
    is_paid: bool
    created_at: str
    items: tuple[InvoiceLineInfo, ...] = field(default_factory=tuple)
    payments: tuple[PaymentInfo, ...] = field(default_factory=tuple)

    @property
    def remaining_balance(self) -> Decimal:
        return self.total_amount - self.amount_paid

    @property
    def counterparty_id(self) -> str | None:
        if self.invoice_type == InvoiceType.SELL:
            return self.customer_id
        return self.supplier_id


@dataclass(frozen=True)
class InvoiceResult:
    """Outcome of a successful create_invoice call."""

    invoice: InvoiceInfo
    movements: tuple[MovementRecord, ...]


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of a successful record_payment call."""

    payment: PaymentInfo
    amount_paid: Decimal
    remaining_balance: Decimal
    payment_status: PaymentStatus
