"""Tests for weighted average cost and stock transitions."""

from decimal import Decimal

import pytest

from ledger_kernel.domain.costing import compute_transition, weighted_average_cost


class TestWeightedAverageCost:

    def test_first_receipt_takes_unit_cost(self):
        assert weighted_average_cost(0, Decimal("0"), 10, Decimal("5")) == Decimal("5")

    def test_blends_existing_stock(self):
        assert weighted_average_cost(10, Decimal("5"), 5, Decimal("8")) == Decimal("6")

    def test_negative_stock_resets_to_unit_cost(self):
        assert weighted_average_cost(-4, Decimal("3"), 10, Decimal("7")) == Decimal("7")

    def test_rounded_to_cost_precision(self):
        result = weighted_average_cost(1, Decimal("1"), 2, Decimal("1.5"))
        assert result == Decimal("1.333333333")

    def test_custom_precision(self):
        result = weighted_average_cost(1, Decimal("1"), 2, Decimal("1.5"), decimal_places=4)
        assert result == Decimal("1.3333")

    def test_rejects_non_positive_quantity_in(self):
        with pytest.raises(ValueError):
            weighted_average_cost(1, Decimal("1"), 0, Decimal("1"))


class TestComputeTransition:

    def test_decrease_keeps_average(self):
        transition = compute_transition(15, Decimal("6"), -12)
        assert transition.quantity_after == 3
        assert transition.avg_cost_after == Decimal("6")
        assert not transition.is_increase

    def test_increase_requires_unit_cost(self):
        with pytest.raises(ValueError):
            compute_transition(0, Decimal("0"), 5)

    def test_negative_result_is_reported_not_rejected(self):
        transition = compute_transition(3, Decimal("6"), -10)
        assert transition.quantity_after == -7

    def test_arithmetic_identity(self):
        transition = compute_transition(7, Decimal("2"), 4, Decimal("3"))
        assert transition.quantity_after == transition.quantity_before + transition.quantity_change
