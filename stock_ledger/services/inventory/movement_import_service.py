import csv
import io
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from stock_ledger.core.config import settings
from stock_ledger.core.exceptions import ValidationError
from stock_ledger.models.shared.enums import MovementType, OrderStatus, PurchaseOrderStatus
from stock_ledger.schemas.inventory.order import Order, PurchaseOrder, PurchaseOrderItem
from stock_ledger.schemas.inventory.reconciliation import (
    CleanupResult, ImportResult, ImportRowError, MovementProcessingResult,
)
from stock_ledger.schemas.inventory.stock_movement import StockMovementCreate
from stock_ledger.services.inventory.stock_movement_service import StockMovementService

logger = logging.getLogger(__name__)

STOCK_AFFECTING_ORDER_STATUSES = {OrderStatus.COMPLETED, OrderStatus.PROCESSING}
RECEIVED_PO_STATUSES = {PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.PARTIALLY_RECEIVED}
CSV_REQUIRED_COLUMNS = {"sku", "quantity"}

class MovementImportService:
    """Creates ledger movements from orders, purchase orders and stock files"""

    def __init__(self, db: AsyncSession, cache=None, exclude_on_hold: Optional[bool] = None):
        self.db = db
        self.cache = cache
        self.movement_service = StockMovementService(db)
        self.exclude_on_hold = settings.EXCLUDE_ON_HOLD_ORDERS if exclude_on_hold is None else exclude_on_hold

    def _mark_stale(self, skus=None):
        if self.cache is None:
            return
        if skus is None:
            self.cache.mark_stale()
        for sku in skus or []:
            self.cache.mark_stale(sku)

    def should_process_order(self, order: Order) -> bool:
        if order.status == OrderStatus.ON_HOLD:
            return not self.exclude_on_hold
        return order.status in STOCK_AFFECTING_ORDER_STATUSES

    async def process_order_stock_movements(self, order: Order) -> MovementProcessingResult:
        """Record one sale movement per line item; lines already imported are skipped"""
        result = MovementProcessingResult()

        if not self.should_process_order(order):
            logger.info(f"Skipping order #{order.number} with status {order.status.value}")
            result.skipped = len(order.line_items)
            return result

        movement_date = order.date_completed or order.date_created or datetime.utcnow()
        touched = set()

        for item in order.line_items:
            if not item.sku or item.quantity <= 0:
                result.skipped += 1
                continue

            quantity = -item.quantity
            existing = await self.movement_service.find_sale_movement(item.sku, order.number, quantity)
            if existing:
                logger.debug(f"Sale of {item.sku} on order #{order.number} already recorded as {existing.id}")
                result.skipped += 1
                continue

            try:
                await self.movement_service.create_stock_movement(StockMovementCreate(
                    sku=item.sku,
                    movement_date=movement_date,
                    quantity=quantity,
                    movement_type=MovementType.SALE,
                    reference_id=order.number,
                    notes=f"Order #{order.number}",
                ))
                result.processed += 1
                touched.add(item.sku)
            except (SQLAlchemyError, ValidationError, ValueError) as e:
                await self.db.rollback()
                error = getattr(e, "detail", str(e))
                logger.error(f"❌ Error recording sale of {item.sku} on order #{order.number}: {error}")
                result.failed += 1
                result.errors.append({"sku": item.sku, "error": str(error)})

        self._mark_stale(touched)
        logger.info(f"Order #{order.number}: {result.processed} sales recorded, {result.skipped} skipped")
        return result

    async def process_multiple_orders(self, orders: List[Order]) -> MovementProcessingResult:
        total = MovementProcessingResult()
        for order in orders:
            result = await self.process_order_stock_movements(order)
            total.processed += result.processed
            total.skipped += result.skipped
            total.failed += result.failed
            total.errors.extend({**error, "order": order.number} for error in result.errors)
        logger.info(f"✅ Processed {len(orders)} orders: {total.processed} sale movements recorded")
        return total

    async def process_purchase_order_stock_movements(
        self, purchase_order: PurchaseOrder, items: Optional[List[PurchaseOrderItem]] = None
    ) -> MovementProcessingResult:
        """Record received quantities as purchase movements, carrying batch and expiry"""
        result = MovementProcessingResult()
        items = purchase_order.items if items is None else items

        if purchase_order.status not in RECEIVED_PO_STATUSES:
            logger.info(
                f"Skipping purchase order {purchase_order.reference_number} "
                f"with status {purchase_order.status.value}"
            )
            result.skipped = len(items)
            return result

        touched = set()
        for item in items:
            if not item.sku or not item.quantity_received or item.quantity_received <= 0:
                result.skipped += 1
                continue

            try:
                await self.movement_service.create_stock_movement(StockMovementCreate(
                    sku=item.sku,
                    movement_date=purchase_order.date,
                    quantity=item.quantity_received,
                    movement_type=MovementType.PURCHASE,
                    reference_id=purchase_order.reference_number,
                    batch_number=item.batch_number,
                    expiry_date=item.expiry_date,
                    notes=f"Purchase Order #{purchase_order.reference_number}",
                ))
                result.processed += 1
                touched.add(item.sku)
            except (SQLAlchemyError, ValidationError, ValueError) as e:
                await self.db.rollback()
                error = getattr(e, "detail", str(e))
                logger.error(
                    f"❌ Error recording receipt of {item.sku} on PO {purchase_order.reference_number}: {error}"
                )
                result.failed += 1
                result.errors.append({"sku": item.sku, "error": str(error)})

        self._mark_stale(touched)
        return result

    async def import_initial_stock_csv(self, content: str, created_by: Optional[str] = None) -> ImportResult:
        """
        Import opening stock from CSV text with a ``sku,quantity,notes`` header.

        Each valid row becomes an ``initial`` movement. Rows with a missing SKU
        or a non-positive quantity are reported, not imported.
        """
        reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
        columns = {name.strip().lower() for name in (reader.fieldnames or [])}
        missing = CSV_REQUIRED_COLUMNS - columns
        if missing:
            raise ValidationError(f"CSV is missing required columns: {', '.join(sorted(missing))}")

        result = ImportResult()
        touched = set()

        for row in reader:
            row = {key.strip().lower(): (value or "").strip() for key, value in row.items() if key}
            sku = row.get("sku", "")

            try:
                quantity = int(row.get("quantity", ""))
            except ValueError:
                result.failed += 1
                result.errors.append(ImportRowError(sku=sku, error="Invalid quantity"))
                continue

            if not sku or quantity <= 0:
                result.failed += 1
                result.errors.append(ImportRowError(sku=sku, error="Invalid SKU or quantity"))
                continue

            try:
                await self.movement_service.create_stock_movement(StockMovementCreate(
                    sku=sku,
                    quantity=quantity,
                    movement_type=MovementType.INITIAL,
                    notes=row.get("notes") or "Imported from CSV",
                    created_by=created_by,
                ))
                result.success += 1
                touched.add(sku)
            except (SQLAlchemyError, ValidationError, ValueError) as e:
                await self.db.rollback()
                result.failed += 1
                result.errors.append(ImportRowError(sku=sku, error=str(getattr(e, "detail", e))))

        self._mark_stale(touched)
        logger.info(f"✅ Initial stock import finished: {result.success} imported, {result.failed} failed")
        return result

    async def cleanup_duplicate_sales(self) -> CleanupResult:
        result = await self.movement_service.cleanup_duplicate_sale_movements()
        if result.removed:
            self._mark_stale()
        return result
