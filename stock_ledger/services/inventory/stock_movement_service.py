import logging
from typing import Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_, delete, desc
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.schemas.inventory.stock_movement import StockMovementCreate
from stock_ledger.schemas.inventory.reconciliation import CleanupResult
from stock_ledger.core.exceptions import NotFoundError, ValidationError
from stock_ledger.models.shared.enums import MovementType
from datetime import datetime

logger = logging.getLogger(__name__)

class StockMovementService:
    """Append/query access to the stock movement ledger"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def validate_movement(movement_data: StockMovementCreate) -> None:
        if movement_data.quantity == 0:
            raise ValidationError("Quantity cannot be zero")

        if movement_data.movement_type == MovementType.ADJUSTMENT and movement_data.reason is None:
            raise ValidationError("Adjustments require a reason")

        if movement_data.movement_type != MovementType.ADJUSTMENT and movement_data.reason is not None:
            raise ValidationError("Only adjustments carry a reason")

    async def create_stock_movement(self, movement_data: StockMovementCreate) -> StockMovement:
        """Append a movement to the ledger"""
        self.validate_movement(movement_data)

        stock_movement = StockMovement(
            **movement_data.model_dump(exclude={'movement_date'}),
            movement_date=movement_data.movement_date or datetime.utcnow(),
        )

        self.db.add(stock_movement)
        await self.db.commit()
        await self.db.refresh(stock_movement)

        logger.info(
            f"Added stock movement {stock_movement.id} for SKU {stock_movement.sku}, "
            f"type: {stock_movement.movement_type.value}, quantity: {stock_movement.quantity}"
        )
        return stock_movement

    async def get_stock_movement_by_id(self, movement_id: int) -> Optional[StockMovement]:
        result = await self.db.execute(select(StockMovement).where(StockMovement.id == movement_id))
        return result.scalar_one_or_none()

    async def get_movements_by_sku(self, sku: str) -> List[StockMovement]:
        """Get the full ledger for a SKU, newest first"""
        result = await self.db.execute(
            select(StockMovement)
            .where(StockMovement.sku == sku)
            .order_by(desc(StockMovement.movement_date), desc(StockMovement.id))
        )
        return list(result.scalars().all())

    async def get_movements_for_skus(self, skus: Sequence[str]) -> Dict[str, List[StockMovement]]:
        """Get the ledgers of several SKUs in one query"""
        grouped: Dict[str, List[StockMovement]] = {sku: [] for sku in skus}
        if not skus:
            return grouped

        result = await self.db.execute(
            select(StockMovement).where(StockMovement.sku.in_(list(skus)))
        )
        for movement in result.scalars().all():
            grouped[movement.sku].append(movement)
        return grouped

    async def get_movements_by_type(self, movement_type: MovementType) -> List[StockMovement]:
        result = await self.db.execute(
            select(StockMovement)
            .where(StockMovement.movement_type == movement_type)
            .order_by(desc(StockMovement.movement_date))
        )
        return list(result.scalars().all())

    async def get_distinct_skus(self) -> List[str]:
        result = await self.db.execute(
            select(StockMovement.sku).distinct().order_by(StockMovement.sku)
        )
        return list(result.scalars().all())

    async def find_sale_movement(self, sku: str, reference_id: str, quantity: int) -> Optional[StockMovement]:
        """Find an already imported sale line"""
        result = await self.db.execute(
            select(StockMovement).where(and_(
                StockMovement.sku == sku,
                StockMovement.movement_type == MovementType.SALE,
                StockMovement.reference_id == reference_id,
                StockMovement.quantity == quantity,
            )).limit(1)
        )
        return result.scalar_one_or_none()

    async def delete_stock_movement(self, movement_id: int) -> StockMovement:
        """Remove a movement entered in error. Not part of the normal flow."""
        movement = await self.get_stock_movement_by_id(movement_id)
        if not movement:
            raise NotFoundError("Stock movement not found")

        await self.db.delete(movement)
        await self.db.commit()

        logger.warning(f"⚠️ Deleted stock movement {movement_id} for SKU {movement.sku}")
        return movement

    async def cleanup_duplicate_sale_movements(self) -> CleanupResult:
        """Keep the oldest of identical (order, SKU, quantity) sale rows and delete the rest"""
        result = CleanupResult()

        sale_movements = await self.get_movements_by_type(MovementType.SALE)
        if not sale_movements:
            logger.info("No sale movements found to clean up")
            return result

        groups: Dict[tuple, List[StockMovement]] = {}
        for movement in sale_movements:
            if not movement.reference_id or not movement.sku:
                continue
            key = (movement.reference_id, movement.sku, movement.quantity)
            groups.setdefault(key, []).append(movement)

        duplicate_groups = {key: rows for key, rows in groups.items() if len(rows) > 1}
        logger.info(f"Found {len(duplicate_groups)} groups with duplicate sale movements")

        for (reference_id, sku, quantity), rows in duplicate_groups.items():
            rows.sort(key=lambda m: m.id)
            duplicate_ids = [m.id for m in rows[1:]]
            await self.db.execute(delete(StockMovement).where(StockMovement.id.in_(duplicate_ids)))
            result.removed += len(duplicate_ids)
            logger.info(f"Keeping movement {rows[0].id} for {reference_id}:{sku}:{quantity}, removed {len(duplicate_ids)}")

        await self.db.commit()
        return result
