"""
Module: ledger_kernel.models.stock
Responsibility: ORM persistence for the inventory ledger: one DailyStock
    snapshot per (product, business date) and the append-only StockMovement
    log.
Architecture position: Kernel > Models.  May import from db/ only.
    Written exclusively by services/inventory_ledger.py.

Invariants enforced:
    - Snapshot uniqueness: at most one DailyStock row per (product_id, date)
      (uq_daily_stock_product_date).
    - Movement arithmetic: quantity_after = quantity_before + quantity_change
      on every StockMovement row (ck_stock_movement_arithmetic), and
      quantity_change is never zero.
    - Movements are append-only (db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate snapshot, surfaced by InventoryLedger as
      SnapshotUniquenessError.
    - IntegrityError on a movement that violates its arithmetic CHECK.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, TimestampedBase
from ledger_kernel.db.types import DATE_LENGTH, ID_LENGTH, TIMESTAMP_LENGTH, DecimalString


class DailyStock(TimestampedBase):
    """
    Stock position of one product on one business date.

    available_qty is signed.  It is non-negative unless backorder mode let a
    decrease through.
    """

    __tablename__ = "daily_stock"

    __table_args__ = (
        UniqueConstraint("product_id", "date", name="uq_daily_stock_product_date"),
    )

    product_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("products.id"),
        nullable=False,
    )

    date: Mapped[str] = mapped_column(
        String(DATE_LENGTH),
        nullable=False,
    )

    available_qty: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    avg_cost: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
        default=Decimal("0"),
    )

    updated_at: Mapped[str] = mapped_column(
        String(TIMESTAMP_LENGTH),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<DailyStock {self.product_id} {self.date} "
            f"qty={self.available_qty} avg={self.avg_cost}>"
        )


class StockMovement(Base):
    """
    One applied quantity change.  Never updated, never deleted.

    invoice_id is a non-owning reference kept for audit and traceability.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        CheckConstraint(
            "quantity_after = quantity_before + quantity_change",
            name="ck_stock_movement_arithmetic",
        ),
        CheckConstraint("quantity_change <> 0", name="ck_stock_movement_nonzero"),
    )

    product_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("products.id"),
        nullable=False,
    )

    invoice_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("invoices.id"),
        nullable=True,
    )

    # Business date of the invoice
    invoice_date: Mapped[str] = mapped_column(
        String(DATE_LENGTH),
        nullable=False,
    )

    quantity_before: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    quantity_change: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    quantity_after: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Unit cost carried by an increase, None on decreases
    unit_cost: Mapped[Decimal | None] = mapped_column(
        DecimalString(),
        nullable=True,
    )

    created_at: Mapped[str] = mapped_column(
        String(TIMESTAMP_LENGTH),
        nullable=False,
    )
