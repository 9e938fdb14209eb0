"""Write-side services.  All flush within the caller's transaction."""

from ledger_kernel.services.catalog_service import CatalogService
from ledger_kernel.services.inventory_ledger import InventoryLedger
from ledger_kernel.services.invoice_processor import InvoiceProcessor

__all__ = ["CatalogService", "InventoryLedger", "InvoiceProcessor"]
