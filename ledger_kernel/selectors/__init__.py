"""Read-only query selectors returning DTOs."""

from ledger_kernel.selectors.invoice_selector import InvoiceSelector
from ledger_kernel.selectors.price_selector import PriceSelector
from ledger_kernel.selectors.stock_selector import StockSelector

__all__ = ["InvoiceSelector", "PriceSelector", "StockSelector"]
