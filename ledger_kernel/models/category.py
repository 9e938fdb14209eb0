"""
Module: ledger_kernel.models.category
Responsibility: ORM persistence for product categories.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TimestampedBase


class Category(TimestampedBase):
    """A named grouping of products."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Category {self.name}>"
