import itertools
import pytest
from types import SimpleNamespace
from datetime import datetime, timezone
from stock_ledger.models.shared.enums import MovementType
from stock_ledger.services.reconciliation.aggregator import MovementTotals, aggregate_movements
from stock_ledger.services.reconciliation.reconciler import reconcile

def movement(movement_type: MovementType, quantity: int):
    return SimpleNamespace(movement_type=movement_type, quantity=quantity)

LEDGER = [
    movement(MovementType.INITIAL, 100),
    movement(MovementType.SALE, -30),
    movement(MovementType.ADJUSTMENT, -5),
    movement(MovementType.PURCHASE, 20),
    movement(MovementType.SALE, -2),
]

class TestAggregateMovements:
    """Folding a ledger into per-type totals"""

    def test_totals_per_type(self):
        totals = aggregate_movements(LEDGER)

        assert totals.initial_stock == 100
        assert totals.total_sales == -32
        assert totals.total_adjustments == -5
        assert totals.total_purchases == 20
        assert totals.movement_count == 5
        assert totals.expected_stock == 83

    def test_order_does_not_matter(self):
        expected = aggregate_movements(LEDGER)
        for permutation in itertools.permutations(LEDGER):
            assert aggregate_movements(permutation) == expected

    def test_empty_ledger_is_all_zero(self):
        totals = aggregate_movements([])
        assert totals == MovementTotals()
        assert totals.expected_stock == 0

    def test_repeated_initial_rows_are_summed(self):
        totals = aggregate_movements([
            movement(MovementType.INITIAL, 10),
            movement(MovementType.INITIAL, 5),
        ])
        assert totals.initial_stock == 15

    def test_accepts_plain_string_types(self):
        totals = aggregate_movements([SimpleNamespace(movement_type="purchase", quantity=7)])
        assert totals.total_purchases == 7

class TestReconcile:

    def test_matching_counts_have_no_discrepancy(self):
        totals = aggregate_movements([
            movement(MovementType.INITIAL, 50),
            movement(MovementType.SALE, -10),
            movement(MovementType.ADJUSTMENT, -5),
            movement(MovementType.PURCHASE, 20),
        ])
        summary = reconcile("SKU-1", "Widget", totals, actual_stock=55)

        assert summary.expected_stock == 55
        assert summary.discrepancy == 0

    def test_discrepancy_is_actual_minus_expected(self):
        totals = aggregate_movements([movement(MovementType.INITIAL, 10)])
        at = datetime(2026, 1, 1, tzinfo=timezone.utc)

        summary = reconcile("SKU-1", "Widget", totals, actual_stock=7, reconciled_at=at)

        assert summary.discrepancy == -3
        assert summary.actual_stock == 7
        assert summary.last_reconciled == at

    @pytest.mark.parametrize("actual", [0, 4, 250])
    def test_expected_plus_discrepancy_is_actual(self, actual):
        summary = reconcile("SKU-1", "Widget", aggregate_movements(LEDGER), actual_stock=actual)
        assert summary.expected_stock + summary.discrepancy == actual
