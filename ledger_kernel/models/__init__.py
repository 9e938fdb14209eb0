"""ORM models for the inventory ledger."""

from ledger_kernel.models.category import Category
from ledger_kernel.models.invoice import (
    INVOICE_PAYMENT_FIELDS,
    Invoice,
    InvoiceItem,
    InvoicePayment,
)
from ledger_kernel.models.party import Customer, Supplier
from ledger_kernel.models.product import Product, ProductPrice
from ledger_kernel.models.schema_version import SchemaVersionRecord
from ledger_kernel.models.stock import DailyStock, StockMovement

__all__ = [
    "Category",
    "Customer",
    "DailyStock",
    "INVOICE_PAYMENT_FIELDS",
    "Invoice",
    "InvoiceItem",
    "InvoicePayment",
    "Product",
    "ProductPrice",
    "SchemaVersionRecord",
    "StockMovement",
    "Supplier",
]
