"""
Typed Exception Hierarchy for the Inventory Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (a POS screen, a sync layer, an admin script) must
decide remediation from the error alone: re-count stock, fix a price list,
ask the cashier for a smaller quantity.  Parsing message strings for that is
fragile, so every condition here has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, log- and API-safe)
  3. Structured DATA attributes (product id, business date, attempted delta)

Example:
    try:
        processor.create_invoice(...)
    except InsufficientStockError as e:
        show_warning(e.product_id, e.available, e.attempted_change)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- SchemaError
    |   +-- SchemaUpgradeError
    |   +-- StoreNotReadyError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- SnapshotUniquenessError
    |   +-- InvalidMovementError
    |
    +-- InvoiceError
    |   +-- InvalidPriceConfigurationError
    |   +-- EmptyInvoiceError
    |   +-- InvalidQuantityError
    |   +-- InvalidInvoiceTypeError
    |   +-- InvalidPaymentAmountError
    |   +-- PaymentExceedsBalanceError
    |   +-- InvoiceNotFoundError
    |
    +-- ReferenceDataError
    |   +-- ProductNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- SupplierNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- InvalidPriceError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError
        +-- ProductReferencedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                           | Severity
-----------|--------------------------------|------------------------------------
Schema     | SCHEMA_UPGRADE_FAILED          | Fatal, blocks all store access
           | STORE_NOT_READY                | Programming error (open() first)
Stock      | INSUFFICIENT_STOCK             | Recoverable (smaller qty, recount)
           | SNAPSHOT_UNIQUENESS_VIOLATION  | Ledger bug, treat as fatal
           | INVALID_MOVEMENT               | Caller bug
Invoice    | INVALID_PRICE_CONFIGURATION    | Recoverable (fix price list)
           | EMPTY_INVOICE                  | Recoverable
           | INVALID_QUANTITY               | Recoverable
           | INVALID_INVOICE_TYPE           | Caller bug
           | INVALID_PAYMENT_AMOUNT         | Recoverable
           | PAYMENT_EXCEEDS_BALANCE        | Recoverable
           | INVOICE_NOT_FOUND              | Recoverable
Reference  | PRODUCT_NOT_FOUND              | Recoverable
           | CUSTOMER_NOT_FOUND             | Recoverable
           | SUPPLIER_NOT_FOUND             | Recoverable
           | CATEGORY_NOT_FOUND             | Recoverable
           | INVALID_PRICE                  | Recoverable
Immutable  | IMMUTABILITY_VIOLATION         | Caller bug
           | PRODUCT_REFERENCED             | Recoverable (keep the product)

No condition is retried automatically by the kernel.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all inventory ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Schema exceptions


class SchemaError(LedgerKernelError):
    """Base exception for store layout errors."""

    code: str = "SCHEMA_ERROR"


class SchemaUpgradeError(SchemaError):
    """The store could not be brought to the requested schema version."""

    code: str = "SCHEMA_UPGRADE_FAILED"

    def __init__(
        self,
        current_version: int,
        target_version: int,
        reason: str,
    ):
        self.current_version = current_version
        self.target_version = target_version
        self.reason = reason
        super().__init__(
            f"Cannot upgrade store from v{current_version} to "
            f"v{target_version}: {reason}"
        )


class StoreNotReadyError(SchemaError):
    """A transactional scope was requested before migrations completed."""

    code: str = "STORE_NOT_READY"

    def __init__(self, database_url: str):
        self.database_url = database_url
        super().__init__(
            f"Store {database_url} is not open; call open() before use"
        )


# Stock exceptions


class StockError(LedgerKernelError):
    """Base exception for stock ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """A decrease would drive the day's available quantity below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        business_date: str,
        available: int,
        attempted_change: int,
    ):
        self.product_id = product_id
        self.business_date = business_date
        self.available = available
        self.attempted_change = attempted_change
        super().__init__(
            f"Insufficient stock for product {product_id} on {business_date}: "
            f"available {available}, attempted change {attempted_change}"
        )


class SnapshotUniquenessError(StockError):
    """
    A second DailyStock row was written for the same (product, date).

    This indicates a ledger bug rather than a user error.
    """

    code: str = "SNAPSHOT_UNIQUENESS_VIOLATION"

    def __init__(self, product_id: str, business_date: str):
        self.product_id = product_id
        self.business_date = business_date
        super().__init__(
            f"Duplicate daily stock snapshot for product {product_id} "
            f"on {business_date}"
        )


class InvalidMovementError(StockError):
    """The requested movement is malformed (zero delta, missing cost)."""

    code: str = "INVALID_MOVEMENT"

    def __init__(self, product_id: str, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"Invalid movement for product {product_id}: {reason}")


# Invoice exceptions


class InvoiceError(LedgerKernelError):
    """Base exception for invoice errors."""

    code: str = "INVOICE_ERROR"


class InvalidPriceConfigurationError(InvoiceError):
    """An item resolves to neither a private override nor a catalog price."""

    code: str = "INVALID_PRICE_CONFIGURATION"

    def __init__(self, product_id: str, price_type: str, line_no: int):
        self.product_id = product_id
        self.price_type = price_type
        self.line_no = line_no
        super().__init__(
            f"Line {line_no}: no {price_type} price for product {product_id} "
            "and no private price override"
        )


class EmptyInvoiceError(InvoiceError):
    """An invoice was submitted without items."""

    code: str = "EMPTY_INVOICE"

    def __init__(self):
        super().__init__("Invoice must contain at least one item")


class InvalidQuantityError(InvoiceError):
    """An item quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, line_no: int, quantity):
        self.line_no = line_no
        self.quantity = quantity
        super().__init__(
            f"Line {line_no}: quantity must be a positive integer, got {quantity!r}"
        )


class InvalidInvoiceTypeError(InvoiceError):
    """Invoice type is not one of buy/sell."""

    code: str = "INVALID_INVOICE_TYPE"

    def __init__(self, invoice_type):
        self.invoice_type = invoice_type
        super().__init__(f"Invalid invoice type: {invoice_type!r}")


class InvalidPaymentAmountError(InvoiceError):
    """A payment amount is negative, zero where positive is required, or not a number."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid payment amount {amount!r}: {reason}")


class PaymentExceedsBalanceError(InvoiceError):
    """A payment larger than the remaining balance."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, invoice_id: str, amount, remaining_balance):
        self.invoice_id = invoice_id
        self.amount = amount
        self.remaining_balance = remaining_balance
        super().__init__(
            f"Payment {amount} exceeds remaining balance {remaining_balance} "
            f"on invoice {invoice_id}"
        )


class InvoiceNotFoundError(InvoiceError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


# Reference data exceptions


class ReferenceDataError(LedgerKernelError):
    """Base exception for catalog and counterparty errors."""

    code: str = "REFERENCE_DATA_ERROR"


class ProductNotFoundError(ReferenceDataError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class CustomerNotFoundError(ReferenceDataError):
    """Customer with given ID was not found."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class SupplierNotFoundError(ReferenceDataError):
    """Supplier with given ID was not found."""

    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: str):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier not found: {supplier_id}")


class CategoryNotFoundError(ReferenceDataError):
    """Category with given ID was not found."""

    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")


class InvalidPriceError(ReferenceDataError):
    """A catalog price is negative or not a number."""

    code: str = "INVALID_PRICE"

    def __init__(self, product_id: str, field: str, value):
        self.product_id = product_id
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} for product {product_id}: {value!r}")


# Immutability exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Stock movements and invoice items are append-only.  Invoices accept
    changes to their payment fields only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


class ProductReferencedError(ImmutabilityError):
    """A product referenced by invoice items or stock movements cannot be deleted."""

    code: str = "PRODUCT_REFERENCED"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} is referenced by invoices or stock movements"
        )
