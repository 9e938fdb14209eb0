"""
LedgerPolicy -- the kernel-side view of runtime settings.

The kernel never reads configuration itself.  ``ledger_config.bridges``
builds a LedgerPolicy from the active settings, and tests build one
directly.
"""

from dataclasses import dataclass

from ledger_kernel.db.types import COST_DECIMAL_PLACES, MONEY_DECIMAL_PLACES

DEFAULT_LOW_STOCK_THRESHOLD = 10


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Behavioural switches and precisions for the ledger services.

    Attributes:
        allow_negative_stock: Backorder mode.  Decreases below zero are
            recorded instead of rejected.
        money_decimal_places: Quantization of prices and totals.
        cost_decimal_places: Quantization of weighted average cost.
        low_stock_threshold: Default threshold for low-stock queries.
    """

    allow_negative_stock: bool = False
    money_decimal_places: int = MONEY_DECIMAL_PLACES
    cost_decimal_places: int = COST_DECIMAL_PLACES
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD

    def __post_init__(self) -> None:
        if self.money_decimal_places < 0 or self.cost_decimal_places < 0:
            raise ValueError("decimal places must be non-negative")
        if self.low_stock_threshold < 0:
            raise ValueError("low_stock_threshold must be non-negative")
