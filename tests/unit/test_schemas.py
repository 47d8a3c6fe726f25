import pytest
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import ValidationError
from stock_ledger.models.shared.enums import ExpiryMode, MovementReason, MovementType
from stock_ledger.schemas.inventory.reconciliation import (
    ExpirySideEffectContext, ReconciliationSummary, StockReconciliationCreate, SummarySnapshot,
)
from stock_ledger.schemas.inventory.stock_movement import StockMovementCreate

class TestStockMovementCreate:

    def test_valid_sale(self):
        movement = StockMovementCreate(sku="  SKU-1 ", quantity=-3, movement_type=MovementType.SALE)
        assert movement.sku == "SKU-1"
        assert movement.reason is None

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            StockMovementCreate(sku="SKU-1", quantity=0, movement_type=MovementType.PURCHASE)

    def test_blank_sku_rejected(self):
        with pytest.raises(ValidationError):
            StockMovementCreate(sku="   ", quantity=1, movement_type=MovementType.PURCHASE)

    def test_adjustment_requires_reason(self):
        with pytest.raises(ValidationError):
            StockMovementCreate(sku="SKU-1", quantity=-1, movement_type=MovementType.ADJUSTMENT)

    def test_reason_only_on_adjustments(self):
        with pytest.raises(ValidationError):
            StockMovementCreate(
                sku="SKU-1", quantity=-1, movement_type=MovementType.SALE, reason=MovementReason.DAMAGE
            )

    def test_adjustment_with_reason(self):
        movement = StockMovementCreate(
            sku="SKU-1", quantity=-4, movement_type="adjustment", reason="expiry"
        )
        assert movement.movement_type == MovementType.ADJUSTMENT
        assert movement.reason == MovementReason.EXPIRY

class TestExpirySideEffectContext:

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            ExpirySideEffectContext(mode=ExpiryMode.MANUAL_SALE, sale_amount=Decimal("-1"))

    def test_amounts_optional(self):
        context = ExpirySideEffectContext(mode="disposal")
        assert context.loss_amount is None
        assert context.require_loss_amount is None

def test_reconciliation_count_cannot_be_negative():
    with pytest.raises(ValidationError):
        StockReconciliationCreate(sku="SKU-1", actual_quantity=-1)

def test_snapshot_uses_last_updated_alias():
    when = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    snapshot = SummarySnapshot(
        summaries=[ReconciliationSummary(
            sku="SKU-1", product_name="Widget", actual_stock=3, discrepancy=3, last_reconciled=when
        )],
        last_updated=when,
    )

    payload = snapshot.model_dump(by_alias=True, mode="json")
    assert "lastUpdated" in payload
    assert SummarySnapshot.model_validate(payload).last_updated == when
