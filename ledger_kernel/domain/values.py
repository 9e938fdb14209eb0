"""
Value enumerations shared by models, domain logic and services.

All are ``str`` enums so they compare equal to their persisted text.
"""

from enum import Enum


class InvoiceType(str, Enum):
    """Direction of an invoice's stock effect."""

    BUY = "buy"  # stock increases, supplier counterparty
    SELL = "sell"  # stock decreases, customer counterparty


class PaymentStatus(str, Enum):
    """Derived from amount_paid against total_amount."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PriceType(str, Enum):
    """Which catalog price an invoice item uses."""

    RETAIL = "retail"
    WHOLESALE = "wholesale"
