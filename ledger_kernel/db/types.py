"""
Module: ledger_kernel.db.types
Responsibility: Exact-decimal column type, width constants and the
    rounding helpers every model and service uses for money and cost.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the ledger.  Money and cost are Decimal, persisted
      as canonical decimal text through DecimalString so that SQLite's REAL
      affinity never touches them.
    - round_money() and round_cost() are the ONLY sanctioned quantization
      functions.  Both use ROUND_HALF_UP.

Failure modes:
    - ValueError from to_decimal() on floats, booleans and non-numeric text.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class DecimalString(TypeDecorator):
    """
    Decimal stored as normalized text for exact round-tripping on SQLite.

    Guarantees:
        - process_bind_param: Decimal -> str (fixed-point, no exponent).
        - process_result_value: str -> Decimal.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format(to_decimal(value), "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


# Column widths
ID_LENGTH = 64
DATE_LENGTH = 10
TIMESTAMP_LENGTH = 23

MONEY_DECIMAL_PLACES = 2
COST_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value) -> Decimal:
    """
    Convert an int, str or Decimal into a Decimal without passing through float.

    Raises:
        ValueError: for floats, booleans, non-finite or non-numeric input.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Refusing inexact numeric value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Not a decimal value: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite decimal value: {value!r}")
    return result


def _quantize(value: Decimal, decimal_places: int, rounding: str) -> Decimal:
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a currency amount to the configured money precision.

    This is the ONLY sanctioned rounding function for currency values.
    """
    return _quantize(value, decimal_places, rounding)


def round_cost(
    value: Decimal,
    decimal_places: int = COST_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a unit cost to the configured cost precision."""
    return _quantize(value, decimal_places, rounding)
