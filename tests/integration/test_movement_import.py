import pytest
from datetime import date, datetime
from stock_ledger.core.exceptions import ValidationError
from stock_ledger.models.shared.enums import MovementType, OrderStatus, PurchaseOrderStatus
from stock_ledger.schemas.inventory.order import Order, OrderLineItem, PurchaseOrder, PurchaseOrderItem
from stock_ledger.services.inventory.movement_import_service import MovementImportService
from stock_ledger.services.inventory.stock_movement_service import StockMovementService
from stock_ledger.services.reconciliation.summary_cache import CacheState

def order(number: str = "1001", status: OrderStatus = OrderStatus.COMPLETED) -> Order:
    return Order(
        number=number,
        status=status,
        date_created=datetime(2026, 2, 10, 9, 0),
        line_items=[
            OrderLineItem(sku="SKU-1", quantity=2),
            OrderLineItem(sku="SKU-2", quantity=1),
            OrderLineItem(sku=None, quantity=1),
        ],
    )

@pytest.mark.asyncio
class TestOrderImport:

    async def test_completed_order_creates_sales(self, db):
        result = await MovementImportService(db).process_order_stock_movements(order())

        assert result.processed == 2
        assert result.skipped == 1

        movements = await StockMovementService(db).get_movements_by_sku("SKU-1")
        assert len(movements) == 1
        assert movements[0].movement_type == MovementType.SALE
        assert movements[0].quantity == -2
        assert movements[0].reference_id == "1001"
        assert movements[0].notes == "Order #1001"

    async def test_reimport_is_idempotent(self, db):
        service = MovementImportService(db)
        await service.process_order_stock_movements(order())
        result = await service.process_order_stock_movements(order())

        assert result.processed == 0
        assert len(await StockMovementService(db).get_movements_by_sku("SKU-1")) == 1

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.CANCELLED, OrderStatus.ON_HOLD])
    async def test_orders_not_affecting_stock_are_skipped(self, db, status):
        result = await MovementImportService(db, exclude_on_hold=True).process_order_stock_movements(
            order(status=status)
        )

        assert result.processed == 0
        assert await StockMovementService(db).get_distinct_skus() == []

    async def test_on_hold_included_when_configured(self, db):
        result = await MovementImportService(db, exclude_on_hold=False).process_order_stock_movements(
            order(status=OrderStatus.ON_HOLD)
        )
        assert result.processed == 2

    async def test_multiple_orders(self, db):
        result = await MovementImportService(db).process_multiple_orders([
            order("1001"),
            order("1002", status=OrderStatus.PROCESSING),
            order("1003", status=OrderStatus.REFUNDED),
        ])

        assert result.processed == 4
        assert len(await StockMovementService(db).get_movements_by_sku("SKU-2")) == 2

    async def test_import_marks_cache_stale(self, db, cache, seed):
        await seed.product("SKU-1", stock_quantity=0)
        await cache.load()

        await MovementImportService(db, cache).process_order_stock_movements(order())

        assert cache.state == CacheState.STALE

@pytest.mark.asyncio
class TestPurchaseOrderImport:

    async def test_received_items_create_purchases(self, db):
        purchase_order = PurchaseOrder(
            reference_number="PO-77",
            status=PurchaseOrderStatus.PARTIALLY_RECEIVED,
            date=datetime(2026, 3, 1, 10, 0),
            items=[
                PurchaseOrderItem(sku="SKU-1", quantity_received=12, batch_number="B-1", expiry_date=date(2026, 9, 1)),
                PurchaseOrderItem(sku="SKU-2", quantity_received=0),
            ],
        )

        result = await MovementImportService(db).process_purchase_order_stock_movements(purchase_order)

        assert result.processed == 1
        assert result.skipped == 1
        movement = (await StockMovementService(db).get_movements_by_sku("SKU-1"))[0]
        assert movement.movement_type == MovementType.PURCHASE
        assert movement.quantity == 12
        assert movement.batch_number == "B-1"
        assert movement.expiry_date == date(2026, 9, 1)
        assert movement.notes == "Purchase Order #PO-77"

    async def test_unreceived_order_is_skipped(self, db):
        purchase_order = PurchaseOrder(
            reference_number="PO-78",
            status=PurchaseOrderStatus.ORDERED,
            date=datetime(2026, 3, 1, 10, 0),
            items=[PurchaseOrderItem(sku="SKU-1", quantity_received=5)],
        )

        result = await MovementImportService(db).process_purchase_order_stock_movements(purchase_order)

        assert result.processed == 0
        assert await StockMovementService(db).get_distinct_skus() == []

@pytest.mark.asyncio
class TestInitialStockCsv:

    async def test_valid_and_invalid_rows(self, db):
        content = (
            "sku,quantity,notes\n"
            "SKU-1,40,Opening count\n"
            "SKU-2,abc,\n"
            "SKU-3,0,\n"
            ",5,\n"
            "SKU-4,7,\n"
        )

        result = await MovementImportService(db).import_initial_stock_csv(content, created_by="ops")

        assert result.success == 2
        assert result.failed == 3
        assert [e.sku for e in result.errors] == ["SKU-2", "SKU-3", ""]

        movement = (await StockMovementService(db).get_movements_by_sku("SKU-4"))[0]
        assert movement.movement_type == MovementType.INITIAL
        assert movement.notes == "Imported from CSV"
        assert movement.created_by == "ops"

    async def test_missing_columns_rejected(self, db):
        with pytest.raises(ValidationError):
            await MovementImportService(db).import_initial_stock_csv("code,amount\nSKU-1,4\n")

@pytest.mark.asyncio
async def test_cleanup_keeps_oldest_duplicate(db, seed):
    first = await seed.movement("SKU-1", -2, MovementType.SALE, reference_id="1001")
    await seed.movement("SKU-1", -2, MovementType.SALE, reference_id="1001")
    await seed.movement("SKU-1", -2, MovementType.SALE, reference_id="1001")
    await seed.movement("SKU-1", -1, MovementType.SALE, reference_id="1002")

    result = await MovementImportService(db).cleanup_duplicate_sales()

    assert result.removed == 2
    remaining = await StockMovementService(db).get_movements_by_sku("SKU-1")
    assert len(remaining) == 2
    assert first.id in [m.id for m in remaining]
    assert sorted(m.quantity for m in remaining) == [-2, -1]
