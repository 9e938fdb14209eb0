"""
Module: ledger_kernel.models.schema_version
Responsibility: Bookkeeping table for applied schema versions.  Written only
    by db/migrations.py, one row per applied version.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.db.types import TIMESTAMP_LENGTH


class SchemaVersionRecord(Base):
    """One applied schema version."""

    __tablename__ = "schema_versions"

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        unique=True,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    applied_at: Mapped[str] = mapped_column(
        String(TIMESTAMP_LENGTH),
        nullable=False,
    )
