"""
Module: ledger_kernel.models.party
Responsibility: ORM persistence for invoice counterparties.  Sell invoices
    reference a Customer, buy invoices reference a Supplier.
Architecture position: Kernel > Models.  May import from db/ only.

Non-goals:
    - credit_limit is informational.  The ledger never blocks a sale on it.
"""

from decimal import Decimal

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TimestampedBase
from ledger_kernel.db.types import DecimalString


class Customer(TimestampedBase):
    """A buyer on sell invoices."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    address: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    credit_limit: Mapped[Decimal | None] = mapped_column(
        DecimalString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Customer {self.name}>"


class Supplier(TimestampedBase):
    """A seller on buy invoices."""

    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    address: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Supplier {self.name}>"
