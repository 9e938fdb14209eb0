"""
Pricing -- unit price resolution, line totals and payment status.

Responsibility:
    Pure functions behind InvoiceProcessor: which unit price an item uses,
    what the line and invoice totals are, and which payment status an
    amount paid implies.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Exactly one effective unit price per item.  Precedence: private
      override, then the catalog price for the item's price_type, else
      InvalidPriceConfigurationError.
    - All totals are Decimal, quantized with round_money().  Floats are
      rejected at the boundary.
    - Payment status thresholds are checked paid-first, so a zero-total
      invoice is paid.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ledger_kernel.db.types import MONEY_DECIMAL_PLACES, round_money, to_decimal
from ledger_kernel.domain.dtos import CatalogPrice, InvoiceItemInput
from ledger_kernel.domain.values import PaymentStatus, PriceType
from ledger_kernel.exceptions import (
    InvalidPaymentAmountError,
    InvalidPriceConfigurationError,
    InvalidQuantityError,
)


def normalize_price_type(price_type) -> PriceType:
    """Accept a PriceType or its text in any case.  Raises ValueError otherwise."""
    if isinstance(price_type, PriceType):
        return price_type
    return PriceType(str(price_type).strip().lower())


def validate_quantity(quantity, line_no: int) -> int:
    """Quantities are positive integers.  Booleans and floats are rejected."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(line_no, quantity)
    return quantity


@dataclass(frozen=True)
class ResolvedPrice:
    """The unit price an item uses and whether it came from the private override."""

    unit_price: Decimal
    is_private: bool


def resolve_price(
    item: InvoiceItemInput,
    catalog_price: CatalogPrice | None,
    line_no: int,
) -> ResolvedPrice:
    """
    Effective unit price for one item, tagged with its source.

    A private override that is missing, unparseable or negative is ignored
    and the catalog price applies, so ``is_private`` is False.

    Raises:
        InvalidPriceConfigurationError: no usable override and no catalog
            price for the item's price_type.
    """
    try:
        price_type = normalize_price_type(item.price_type)
    except ValueError:
        raise InvalidPriceConfigurationError(
            item.product_id, str(item.price_type), line_no
        ) from None

    if item.is_private_price and item.private_price_amount is not None:
        try:
            override = to_decimal(item.private_price_amount)
        except ValueError:
            override = None
        if override is not None and override >= 0:
            return ResolvedPrice(unit_price=override, is_private=True)

    if catalog_price is not None:
        base = catalog_price.for_type(price_type)
        if base is not None and base >= 0:
            return ResolvedPrice(unit_price=base, is_private=False)

    raise InvalidPriceConfigurationError(item.product_id, price_type.value, line_no)


def resolve_unit_price(
    item: InvoiceItemInput,
    catalog_price: CatalogPrice | None,
    line_no: int,
) -> Decimal:
    """Effective unit price for one item.  See resolve_price."""
    return resolve_price(item, catalog_price, line_no).unit_price


def line_total(
    quantity: int,
    unit_price: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Decimal:
    return round_money(Decimal(quantity) * unit_price, decimal_places)


def invoice_total(
    line_totals: Iterable[Decimal],
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Decimal:
    return round_money(sum(line_totals, Decimal("0")), decimal_places)


def parse_amount_paid(amount, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Parse and quantize a non-negative amount paid."""
    try:
        value = to_decimal(amount)
    except ValueError as exc:
        raise InvalidPaymentAmountError(amount, str(exc)) from exc
    if value < 0:
        raise InvalidPaymentAmountError(amount, "amount paid cannot be negative")
    return round_money(value, decimal_places)


def derive_payment_status(total_amount: Decimal, amount_paid: Decimal) -> PaymentStatus:
    """
    paid when amount_paid >= total_amount, partial when 0 < amount_paid,
    pending otherwise.
    """
    if amount_paid >= total_amount:
        return PaymentStatus.PAID
    if amount_paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING
