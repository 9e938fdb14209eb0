"""
Ledger Invariants Contract.

These invariants are structural law for the inventory ledger.  No setting
in ``ledger_config`` may switch them off.  Backorder mode relaxes only the
non-negative quantity rule, and it is the single configurable exception.

This module exists solely to declare them.  Enforcement is distributed
across InventoryLedger, InvoiceProcessor, the SchemaManager, the
stock_movements CHECK constraint and the ORM immutability listeners.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    MOVEMENT_ARITHMETIC = "movement_arithmetic"
    """quantity_after == quantity_before + quantity_change on every
    StockMovement row.  Enforced by InventoryLedger and a CHECK constraint."""

    SNAPSHOT_UNIQUENESS = "snapshot_uniqueness"
    """At most one DailyStock row per (product_id, date).  Enforced by a
    unique constraint and InventoryLedger."""

    MOVEMENT_IMMUTABILITY = "movement_immutability"
    """StockMovement and InvoiceItem rows are append-only.  Enforced by
    ledger_kernel.db.immutability."""

    INVOICE_ATOMICITY = "invoice_atomicity"
    """An invoice, its items and all their stock movements persist together
    or not at all.  Enforced by InvoiceProcessor savepoints."""

    DECIMAL_MONEY = "decimal_money"
    """Currency and cost arithmetic uses Decimal with explicit quantization.
    Enforced by ledger_kernel.db.types and DecimalString columns."""

    ADDITIVE_SCHEMA = "additive_schema"
    """Schema versions only add indexes and never lose rows.  Enforced by
    SchemaManager row-count validation."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "ledger_config",
    "scripts",
)
