"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock ledger is an audit trail.  A stock movement that could be edited
after the fact would make every later snapshot unexplainable, and an invoice
item that could change would silently disagree with the movements it
produced.  Corrections are new invoices, never edits.

The stock_movements CHECK constraint guards the movement arithmetic at the
database level.  This module guards mutability at the ORM level:

    session.flush()
         |
         v
    [before_flush]  --> _check_product_deletion_before_flush() --> ProductReferencedError
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete()       --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|---------------------------------------------------------
StockMovement   | ALWAYS immutable, never deleted
InvoiceItem     | ALWAYS immutable, never deleted
InvoicePayment  | ALWAYS immutable, never deleted
Invoice         | Only amount_paid, payment_status, is_paid may change.
                | Never deleted.
Product         | id and created_at fixed.  Not deletable while referenced
                | by invoice items or stock movements.
DailyStock      | Mutable in place (it is the derived current state).

===============================================================================
USAGE
===============================================================================

Registered by LedgerStore.open():

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import ImmutabilityViolationError, ProductReferencedError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import (
    INVOICE_PAYMENT_FIELDS,
    Invoice,
    InvoiceItem,
    InvoicePayment,
    Product,
    StockMovement,
)

logger = get_logger("db.immutability")

_PRODUCT_IDENTITY_FIELDS = frozenset({"id", "created_at"})


def _changed_columns(target) -> set[str]:
    """Column attributes with pending changes on ``target``."""
    state = inspect(target)
    return {
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    }


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_append_only_update(mapper, connection, target):
    """Movements, items and payments are immutable from creation."""
    if not isinstance(target, (StockMovement, InvoiceItem, InvoicePayment)):
        return
    if not _changed_columns(target):
        return
    entity_type = type(target).__name__
    _block(entity_type, target, "UPDATE", f"{entity_type} records are append-only")


def _check_append_only_delete(mapper, connection, target):
    if not isinstance(target, (StockMovement, InvoiceItem, InvoicePayment, Invoice)):
        return
    entity_type = type(target).__name__
    _block(entity_type, target, "DELETE", f"{entity_type} records cannot be deleted")


def _check_invoice_immutability(mapper, connection, target):
    """
    Invoices accept payment field changes only.

    Everything else, type, counterparty, dates and totals included, is
    fixed once the invoice is flushed.
    """
    if not isinstance(target, Invoice):
        return
    forbidden = _changed_columns(target) - INVOICE_PAYMENT_FIELDS
    if forbidden:
        _block(
            "Invoice",
            target,
            "UPDATE",
            f"only payment fields may change, attempted: {sorted(forbidden)}",
        )


def _check_product_immutability(mapper, connection, target):
    if not isinstance(target, Product):
        return
    forbidden = _changed_columns(target) & _PRODUCT_IDENTITY_FIELDS
    if forbidden:
        _block(
            "Product",
            target,
            "UPDATE",
            f"identity fields cannot change: {sorted(forbidden)}",
        )


def _check_product_deletion_before_flush(session, flush_context, instances):
    """
    Refuse to delete products still referenced by the ledger.

    Runs in before_flush, before the flush plan is finalized.
    """
    for obj in list(session.deleted):
        if not isinstance(obj, Product):
            continue

        with session.no_autoflush:
            item_refs = session.execute(
                select(func.count())
                .select_from(InvoiceItem)
                .where(InvoiceItem.product_id == obj.id)
            ).scalar_one()
            movement_refs = session.execute(
                select(func.count())
                .select_from(StockMovement)
                .where(StockMovement.product_id == obj.id)
            ).scalar_one()

        if item_refs or movement_refs:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Product",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "product_has_ledger_references",
                },
            )
            raise ProductReferencedError(product_id=str(obj.id))


_LISTENERS = (
    (Session, "before_flush", _check_product_deletion_before_flush),
    (StockMovement, "before_update", _check_append_only_update),
    (StockMovement, "before_delete", _check_append_only_delete),
    (InvoiceItem, "before_update", _check_append_only_update),
    (InvoiceItem, "before_delete", _check_append_only_delete),
    (InvoicePayment, "before_update", _check_append_only_update),
    (InvoicePayment, "before_delete", _check_append_only_delete),
    (Invoice, "before_update", _check_invoice_immutability),
    (Invoice, "before_delete", _check_append_only_delete),
    (Product, "before_update", _check_product_immutability),
)


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left alone.
    """
    for target, event_name, listener_fn in _LISTENERS:
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _LISTENERS:
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
