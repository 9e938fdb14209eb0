"""
Tests for InventoryLedger -- snapshots, movements and weighted average cost.

Covers:
- Buy 10 @ 5, buy 5 @ 8 -> qty 15, avg 6; sell 12 -> qty 3, avg 6;
  sell 10 -> InsufficientStockError with nothing written
- Movement arithmetic and one snapshot per (product, date)
- Lazy snapshot creation; backorder mode
- Input validation
- open_day carry-forward and idempotency
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.policy import LedgerPolicy
from ledger_kernel.exceptions import (
    InsufficientStockError,
    InvalidMovementError,
    ProductNotFoundError,
)
from ledger_kernel.models import DailyStock, StockMovement
from ledger_kernel.services import InventoryLedger

DAY1 = "2024-01-01"
DAY2 = "2024-01-02"
DAY3 = "2024-01-03"


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


class TestWeightedAverageScenario:

    def test_buy_buy_sell_sell(self, session, ledger, product):
        ledger.apply_movement(product.id, None, DAY1, 10, unit_cost=Decimal("5"))
        ledger.apply_movement(product.id, None, DAY1, 5, unit_cost=Decimal("8"))

        snapshot = ledger.get_snapshot(product.id, DAY1)
        assert snapshot.available_qty == 15
        assert snapshot.avg_cost == Decimal("6")

        movement = ledger.apply_movement(product.id, None, DAY1, -12)
        assert (movement.quantity_before, movement.quantity_change, movement.quantity_after) == (
            15,
            -12,
            3,
        )
        snapshot = ledger.get_snapshot(product.id, DAY1)
        assert snapshot.available_qty == 3
        assert snapshot.avg_cost == Decimal("6")

        movements_before = _count(session, StockMovement)
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.apply_movement(product.id, None, DAY1, -10)
        assert exc_info.value.available == 3
        assert exc_info.value.attempted_change == -10

        assert _count(session, StockMovement) == movements_before
        assert ledger.get_snapshot(product.id, DAY1).available_qty == 3

    def test_movement_arithmetic_holds(self, session, ledger, product):
        ledger.apply_movement(product.id, None, DAY1, 4, unit_cost="1.25")
        ledger.apply_movement(product.id, None, DAY1, -3)
        ledger.apply_movement(product.id, None, DAY1, 9, unit_cost=2)
        for movement in session.execute(select(StockMovement)).scalars():
            assert movement.quantity_after == movement.quantity_before + movement.quantity_change

    def test_decrease_records_no_unit_cost(self, ledger, stocked_product):
        movement = ledger.apply_movement(stocked_product.id, None, DAY1, -1, unit_cost="99")
        assert movement.unit_cost is None


class TestSnapshots:

    def test_one_row_per_product_and_date(self, session, ledger, product):
        for _ in range(3):
            ledger.apply_movement(product.id, None, DAY1, 1, unit_cost=1)
        assert _count(session, DailyStock) == 1

    def test_new_date_starts_from_zero(self, ledger, stocked_product):
        # No carry-forward without open_day
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.apply_movement(stocked_product.id, None, DAY2, -1)
        assert exc_info.value.available == 0

    def test_missing_snapshot_is_none(self, ledger, product):
        assert ledger.get_snapshot(product.id, DAY1) is None

    def test_failed_first_movement_leaves_no_snapshot(self, session, ledger, product):
        with pytest.raises(InsufficientStockError):
            ledger.apply_movement(product.id, None, DAY1, -1)
        assert _count(session, DailyStock) == 0

    def test_zero_cost_receipt(self, ledger, product):
        ledger.apply_movement(product.id, None, DAY1, 10, unit_cost=Decimal("4"))
        ledger.apply_movement(product.id, None, DAY1, 10, unit_cost=Decimal("0"))
        assert ledger.get_snapshot(product.id, DAY1).avg_cost == Decimal("2")


class TestBackorderMode:

    def test_negative_stock_allowed(self, session, clock_service, product):
        ledger = InventoryLedger(session, clock_service, LedgerPolicy(allow_negative_stock=True))
        movement = ledger.apply_movement(product.id, None, DAY1, -4)
        assert movement.quantity_after == -4
        assert ledger.get_snapshot(product.id, DAY1).available_qty == -4

    def test_receipt_after_backorder_takes_unit_cost(self, session, clock_service, product):
        ledger = InventoryLedger(session, clock_service, LedgerPolicy(allow_negative_stock=True))
        ledger.apply_movement(product.id, None, DAY1, -4)
        ledger.apply_movement(product.id, None, DAY1, 10, unit_cost=Decimal("3"))
        snapshot = ledger.get_snapshot(product.id, DAY1)
        assert snapshot.available_qty == 6
        assert snapshot.avg_cost == Decimal("3")


class TestValidation:

    @pytest.mark.parametrize("change", [0, 1.5, True, "3"])
    def test_invalid_change(self, ledger, product, change):
        with pytest.raises(InvalidMovementError):
            ledger.apply_movement(product.id, None, DAY1, change, unit_cost=1)

    def test_increase_requires_unit_cost(self, ledger, product):
        with pytest.raises(InvalidMovementError):
            ledger.apply_movement(product.id, None, DAY1, 5)

    def test_negative_unit_cost(self, ledger, product):
        with pytest.raises(InvalidMovementError):
            ledger.apply_movement(product.id, None, DAY1, 5, unit_cost="-1")

    def test_float_unit_cost(self, ledger, product):
        with pytest.raises(InvalidMovementError):
            ledger.apply_movement(product.id, None, DAY1, 5, unit_cost=1.5)

    def test_bad_date(self, ledger, product):
        with pytest.raises(InvalidMovementError):
            ledger.apply_movement(product.id, None, "01/01/2024", 5, unit_cost=1)

    def test_unknown_product(self, ledger):
        with pytest.raises(ProductNotFoundError):
            ledger.apply_movement("missing", None, DAY1, 5, unit_cost=1)


class TestOpenDay:

    def test_carries_latest_state_forward(self, ledger, product, create_product):
        other = create_product("Gadget")
        ledger.apply_movement(product.id, None, DAY1, 10, unit_cost=Decimal("5"))
        ledger.apply_movement(other.id, None, DAY1, 4, unit_cost=Decimal("2"))
        ledger.apply_movement(other.id, None, DAY2, 7, unit_cost=Decimal("3"))

        created = ledger.open_day(DAY3)

        assert created == 2
        assert ledger.get_snapshot(product.id, DAY3).available_qty == 10
        carried = ledger.get_snapshot(other.id, DAY3)
        assert carried.available_qty == 7
        assert carried.avg_cost == Decimal("3")

    def test_idempotent(self, session, ledger, stocked_product):
        assert ledger.open_day(DAY2) == 1
        assert ledger.open_day(DAY2) == 0
        assert _count(session, DailyStock) == 2

    def test_existing_row_untouched(self, ledger, stocked_product):
        ledger.apply_movement(stocked_product.id, None, DAY2, 3, unit_cost=Decimal("9"))
        assert ledger.open_day(DAY2) == 0
        assert ledger.get_snapshot(stocked_product.id, DAY2).available_qty == 3

    def test_defaults_to_today(self, ledger, product):
        # The test clock's business day is DAY1; history is from the day before
        ledger.apply_movement(product.id, None, "2023-12-31", 2, unit_cost=1)
        assert ledger.open_day() == 1
        assert ledger.get_snapshot(product.id, DAY1).available_qty == 2

    def test_sale_after_open_day(self, ledger, stocked_product):
        ledger.open_day(DAY2)
        movement = ledger.apply_movement(stocked_product.id, None, DAY2, -5)
        assert movement.quantity_before == 20
        assert movement.quantity_after == 15

    def test_logged(self, ledger, stocked_product, captured_logs):
        ledger.open_day(DAY2)
        logs = [r for r in captured_logs() if r["message"] == "day_opened"]
        assert logs[-1]["snapshots_created"] == 1


class TestLogging:

    def test_movement_logged(self, ledger, product, captured_logs):
        ledger.apply_movement(product.id, None, DAY1, 3, unit_cost=1)
        record = next(r for r in captured_logs() if r["message"] == "movement_applied")
        assert record["product_id"] == product.id
        assert record["quantity_after"] == 3

    def test_insufficient_stock_warned(self, ledger, product, captured_logs):
        with pytest.raises(InsufficientStockError):
            ledger.apply_movement(product.id, None, DAY1, -2)
        assert any(
            r["message"] == "insufficient_stock" and r["level"] == "WARNING"
            for r in captured_logs()
        )
