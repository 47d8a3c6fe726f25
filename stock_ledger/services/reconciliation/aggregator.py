"""
Folding a SKU's movement ledger into expected stock.

The fold is a plain per-type sum, so the result does not depend on the order
in which movements are read and repeated ``initial`` rows are simply added.
"""
from dataclasses import dataclass
from typing import Iterable
from stock_ledger.models.shared.enums import MovementType


@dataclass(frozen=True)
class MovementTotals:
    initial_stock: int = 0
    total_sales: int = 0
    total_adjustments: int = 0
    total_purchases: int = 0
    movement_count: int = 0

    @property
    def expected_stock(self) -> int:
        return self.initial_stock + self.total_sales + self.total_adjustments + self.total_purchases


def aggregate_movements(movements: Iterable) -> MovementTotals:
    """Partition movements by type and sum quantities within each partition"""
    sums = {movement_type: 0 for movement_type in MovementType}
    count = 0

    for movement in movements:
        sums[MovementType(movement.movement_type)] += int(movement.quantity)
        count += 1

    return MovementTotals(
        initial_stock=sums[MovementType.INITIAL],
        total_sales=sums[MovementType.SALE],
        total_adjustments=sums[MovementType.ADJUSTMENT],
        total_purchases=sums[MovementType.PURCHASE],
        movement_count=count,
    )
