"""
Module: ledger_kernel.models.product
Responsibility: ORM persistence for the product catalog and its dated price
    list.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Product identity (id, created_at) is fixed at creation.  Only the
      descriptive fields (name, barcode, category, description, sku, shelf)
      may change afterwards.
    - A product referenced by invoice items or stock movements is never
      deleted (db/immutability.py, plus FK constraints).
    - ProductPrice rows hold non-negative Decimal prices.  The price in effect
      on a date is the row with the greatest effective_date on or before it,
      latest created_at breaking ties.

Failure modes:
    - IntegrityError on a price row pointing at a missing product.
    - ProductReferencedError when deleting a referenced product.
"""

from decimal import Decimal

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TimestampedBase
from ledger_kernel.db.types import DATE_LENGTH, ID_LENGTH, DecimalString


class Product(TimestampedBase):
    """
    A sellable, stockable item.

    Non-goals:
        - Stock levels are not stored here; they live in DailyStock.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    barcode: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    category_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("categories.id"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    sku: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    # Physical location in the shop
    shelf: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    prices: Mapped[list["ProductPrice"]] = relationship(
        back_populates="product",
        order_by="ProductPrice.effective_date",
    )

    def __repr__(self) -> str:
        return f"<Product {self.name}>"


class ProductPrice(TimestampedBase):
    """A retail/wholesale price pair effective from a business date."""

    __tablename__ = "product_prices"

    product_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("products.id"),
        nullable=False,
    )

    retail_price: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
    )

    wholesale_price: Mapped[Decimal] = mapped_column(
        DecimalString(),
        nullable=False,
    )

    effective_date: Mapped[str] = mapped_column(
        String(DATE_LENGTH),
        nullable=False,
    )

    product: Mapped[Product] = relationship(back_populates="prices")

    def price_for(self, price_type: str) -> Decimal:
        """Return the retail or wholesale price."""
        if price_type == "wholesale":
            return self.wholesale_price
        return self.retail_price
