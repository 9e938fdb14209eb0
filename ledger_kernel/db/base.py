"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the string primary-key convention, the type annotation map for
    consistent column types, and the TimestampedBase mixin.
Architecture position: Kernel > DB.  ALL model files import from here.  May
    import domain/identifiers.py (pure).  MUST NOT import from models/,
    services/, selectors/, or outer layers.

Invariants enforced:
    - Opaque string identifiers: every model's ``id`` defaults to
      IdentifierGenerator output, so records created offline on different
      devices never collide in practice.
    - Decimal precision: type_annotation_map maps Python Decimal to
      DecimalString.  NEVER use float for money or cost.
    - Timestamps are canonical-zone strings supplied by ClockService, never
      server-side defaults, because the database has no notion of the
      ledger's canonical zone.
"""

from decimal import Decimal
from typing import ClassVar

from sqlalchemy import Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ledger_kernel.db.types import ID_LENGTH, TIMESTAMP_LENGTH, DecimalString
from ledger_kernel.domain.identifiers import generate_id


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Guarantees:
        - id is a String(64) primary key defaulting to ``generate_id()``.
        - Decimal maps to DecimalString (exact text storage).
        - int maps to Integer (SQLite INTEGER affinity).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalString(),
        int: Integer,
        str: String(255),
    }

    id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        primary_key=True,
        default=generate_id,
    )


class TimestampedBase(Base):
    """Abstract base adding the canonical-zone ``created_at`` timestamp."""

    __abstract__ = True

    created_at: Mapped[str] = mapped_column(
        String(TIMESTAMP_LENGTH),
        nullable=False,
    )
