"""
Module: ledger_kernel.models.invoice
Responsibility: ORM persistence for invoices, their line items and the
    payments recorded against them.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - Exactly one counterparty per invoice, chosen by type: sell invoices
      carry customer_id, buy invoices carry supplier_id (CHECK constraint).
    - total_amount equals the sum of item total_price values.  Computed by
      InvoiceProcessor before insert.
    - An invoice exclusively owns its items and payments.  Items are
      immutable after insert.  Only amount_paid, payment_status and is_paid
      may change on the invoice (db/immutability.py).
    - invoice_date is the business date that keys stock movements.
      created_at is the wall-clock creation time.

Failure modes:
    - IntegrityError on a CHECK or FK violation.
    - ImmutabilityViolationError on any update outside the payment fields.
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TimestampedBase
from ledger_kernel.db.types import (
    DATE_LENGTH,
    ID_LENGTH,
    TIMESTAMP_LENGTH,
    DecimalString,
)
from ledger_kernel.domain.values import InvoiceType, PaymentStatus, PriceType

# Fields record_payment may change after an invoice is created
INVOICE_PAYMENT_FIELDS: frozenset[str] = frozenset(
    {"amount_paid", "payment_status", "is_paid"}
)


class Invoice(TimestampedBase):
    """
    A buy or sell document.

    Contract:
        Created atomically with its items by InvoiceProcessor.  Corrections
        are new invoices, never edits.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        CheckConstraint(
            "(invoice_type = 'sell' AND customer_id IS NOT NULL AND supplier_id IS NULL)"
            " OR (invoice_type = 'buy' AND supplier_id IS NOT NULL AND customer_id IS NULL)",
            name="ck_invoice_counterparty",
        ),
    )

    invoice_type: Mapped[InvoiceType] = mapped_column(
        String(10),
        nullable=False,
    )

    customer_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("customers.id"),
        nullable=True,
    )

    supplier_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("suppliers.id"),
        nullable=True,
    )

    # Business date, keys stock movements
    invoice_date: Mapped[str] = mapped_column(
        String(DATE_LENGTH),
        nullable=False,
    )

    due_date: Mapped[str | None] = mapped_column(
        String(DATE_LENGTH),
        nullable=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
    )

    amount_paid: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(10),
        nullable=False,
    )

    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    items: Mapped[list["InvoiceItem"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceItem.line_no",
    )

    payments: Mapped[list["InvoicePayment"]] = relationship(
        back_populates="invoice",
        order_by="InvoicePayment.payment_date",
    )

    @property
    def counterparty_id(self) -> str | None:
        if self.invoice_type == InvoiceType.SELL:
            return self.customer_id
        return self.supplier_id

    @property
    def remaining_balance(self) -> Decimal:
        return self.total_amount - self.amount_paid

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_type} {self.id} total={self.total_amount}>"


class InvoiceItem(Base):
    """
    One line of an invoice.

    total_price = quantity x unit_price, where unit_price is the effective
    price after applying a private override or the catalog price_type.
    """

    __tablename__ = "invoice_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_item_quantity_positive"),
    )

    invoice_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    product_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("products.id"),
        nullable=False,
    )

    # Position within the invoice, 1-based
    line_no: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    price_type: Mapped[PriceType] = mapped_column(
        String(10),
        nullable=False,
        default=PriceType.RETAIL,
    )

    unit_price: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
    )

    total_price: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
    )

    is_private_price: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    private_price_amount: Mapped[Decimal | None] = mapped_column(
        DecimalString(),
        nullable=True,
    )

    private_price_note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    invoice: Mapped[Invoice] = relationship(back_populates="items")


class InvoicePayment(Base):
    """A payment received or made against an invoice after creation."""

    __tablename__ = "invoice_payments"

    invoice_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    payment_amount: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
    )

    payment_date: Mapped[str] = mapped_column(
        String(TIMESTAMP_LENGTH),
        nullable=False,
    )

    payment_method: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    invoice: Mapped[Invoice] = relationship(back_populates="payments")
