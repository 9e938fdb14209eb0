"""
Costing -- weighted moving average and stock arithmetic.

Responsibility:
    Pure functions that compute the next DailyStock state from the current
    one and a signed quantity change.  No I/O, no session.

Architecture position:
    Kernel > Domain -- pure functional core.  Called by InventoryLedger.

Invariants enforced:
    - quantity_after == quantity_before + quantity_change (by construction).
    - Decreases never change the average cost.
    - An increase onto a zero or negative balance resets the average to the
      incoming unit cost, so a backordered (negative) balance never drags the
      average below zero or inflates it.
"""

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.db.types import COST_DECIMAL_PLACES, round_cost


@dataclass(frozen=True)
class StockTransition:
    """Result of applying one quantity change to a snapshot."""

    quantity_before: int
    quantity_change: int
    quantity_after: int
    avg_cost_before: Decimal
    avg_cost_after: Decimal

    @property
    def is_increase(self) -> bool:
        return self.quantity_change > 0


def weighted_average_cost(
    quantity_before: int,
    avg_cost: Decimal,
    quantity_in: int,
    unit_cost: Decimal,
    decimal_places: int = COST_DECIMAL_PLACES,
) -> Decimal:
    """
    Average unit cost after receiving ``quantity_in`` units at ``unit_cost``.

    (quantity_before * avg_cost + quantity_in * unit_cost) / quantity_after,
    or unit_cost when quantity_before <= 0.
    """
    if quantity_in <= 0:
        raise ValueError("weighted_average_cost requires a positive quantity_in")
    if quantity_before <= 0:
        return round_cost(unit_cost, decimal_places)
    quantity_after = quantity_before + quantity_in
    total_value = Decimal(quantity_before) * avg_cost + Decimal(quantity_in) * unit_cost
    return round_cost(total_value / Decimal(quantity_after), decimal_places)


def compute_transition(
    quantity_before: int,
    avg_cost: Decimal,
    quantity_change: int,
    unit_cost: Decimal | None = None,
    decimal_places: int = COST_DECIMAL_PLACES,
) -> StockTransition:
    """
    Next snapshot state for a signed change.

    ``unit_cost`` is required for increases and ignored for decreases.
    Negative results are returned as-is.  Whether they are allowed is the
    caller's policy.
    """
    quantity_after = quantity_before + quantity_change
    if quantity_change > 0:
        if unit_cost is None:
            raise ValueError("unit_cost is required for a stock increase")
        new_avg = weighted_average_cost(
            quantity_before, avg_cost, quantity_change, unit_cost, decimal_places
        )
    else:
        new_avg = avg_cost
    return StockTransition(
        quantity_before=quantity_before,
        quantity_change=quantity_change,
        quantity_after=quantity_after,
        avg_cost_before=avg_cost,
        avg_cost_after=new_avg,
    )
