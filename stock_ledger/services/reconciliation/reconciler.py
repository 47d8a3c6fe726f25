import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, List, Optional, Sequence, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select
from sqlalchemy import desc
from stock_ledger.core.config import settings
from stock_ledger.core.exceptions import SourceTimeoutError, SourceUnavailableError
from stock_ledger.models.inventory.stock_reconciliation import StockReconciliation
from stock_ledger.models.shared.enums import MovementReason, MovementType
from stock_ledger.schemas.inventory.reconciliation import ReconciliationSummary, StockReconciliationCreate
from stock_ledger.schemas.inventory.stock_movement import StockMovementCreate
from stock_ledger.services.inventory.product_service import ProductService
from stock_ledger.services.inventory.stock_movement_service import StockMovementService
from stock_ledger.services.reconciliation.aggregator import MovementTotals, aggregate_movements

logger = logging.getLogger(__name__)

T = TypeVar("T")


def reconcile(
    sku: str,
    product_name: str,
    totals: MovementTotals,
    actual_stock: int,
    reconciled_at: Optional[datetime] = None,
) -> ReconciliationSummary:
    """Compare the folded ledger with the externally reported stock"""
    expected_stock = totals.expected_stock
    return ReconciliationSummary(
        sku=sku,
        product_name=product_name,
        initial_stock=totals.initial_stock,
        total_sales=totals.total_sales,
        total_adjustments=totals.total_adjustments,
        total_purchases=totals.total_purchases,
        expected_stock=expected_stock,
        actual_stock=actual_stock,
        discrepancy=actual_stock - expected_stock,
        last_reconciled=reconciled_at or datetime.now(timezone.utc),
    )


class ReconciliationService:
    """Builds reconciliation summaries from the ledger and the platform's stock figures"""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None, batch_size: Optional[int] = None):
        self.db = db
        self.movement_service = StockMovementService(db)
        self.product_service = ProductService(db)
        self.timeout = settings.SOURCE_TIMEOUT_SECONDS if timeout is None else timeout
        self.batch_size = batch_size or settings.SUMMARY_BATCH_SIZE

    async def _reset_session(self):
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"❌ Session rollback failed: {str(e)}")

    async def read_source(self, awaitable: Awaitable[T], description: str) -> T:
        """Await a ledger/catalog read under the configured timeout"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            await self._reset_session()
            raise SourceTimeoutError(f"Timed out after {self.timeout}s reading {description}")
        except (SQLAlchemyError, OSError) as e:
            await self._reset_session()
            raise SourceUnavailableError(f"Could not read {description}: {str(e)}")

    async def list_skus(self) -> List[str]:
        """Every SKU in the ledger or the catalog"""
        ledger_skus = await self.movement_service.get_distinct_skus()
        catalog_skus = await self.product_service.get_all_skus()
        return sorted(set(ledger_skus) | set(catalog_skus))

    async def _summaries_for_batch(self, skus: Sequence[str]) -> List[ReconciliationSummary]:
        ledgers = await self.read_source(
            self.movement_service.get_movements_for_skus(skus), f"ledger for {len(skus)} SKUs"
        )
        products = await self.read_source(
            self.product_service.get_products_by_skus(skus), f"actual stock for {len(skus)} SKUs"
        )

        now = datetime.now(timezone.utc)
        summaries = []
        for sku in skus:
            product = products.get(sku)
            actual_stock = product.stock_quantity if product else None
            if actual_stock is None:
                # Omitting the SKU is preferred over inventing an actual figure
                logger.warning(f"⚠️ No actual stock reading for SKU {sku}, excluded from this run")
                continue

            totals = aggregate_movements(ledgers.get(sku, []))
            summary = reconcile(sku, ProductService.display_name(product, sku), totals, actual_stock, now)
            logger.debug(
                f"Summary for SKU {sku}: Initial={totals.initial_stock}, Sales={totals.total_sales}, "
                f"Adjustments={totals.total_adjustments}, Purchases={totals.total_purchases}, "
                f"Expected={summary.expected_stock}, Actual={actual_stock}, Discrepancy={summary.discrepancy}"
            )
            summaries.append(summary)
        return summaries

    async def generate_summary(self, sku: str) -> Optional[ReconciliationSummary]:
        """Summary for one SKU, or None when it has no actual stock reading"""
        summaries = await self._summaries_for_batch([sku])
        return summaries[0] if summaries else None

    async def generate_summaries(self, skus: Sequence[str]) -> List[ReconciliationSummary]:
        """Summaries for the given SKUs; failed batches are skipped, not fabricated"""
        summaries: List[ReconciliationSummary] = []
        failed: List[str] = []

        for start in range(0, len(skus), self.batch_size):
            batch = list(skus[start:start + self.batch_size])
            try:
                summaries.extend(await self._summaries_for_batch(batch))
            except SourceUnavailableError as e:
                logger.error(f"❌ Error generating summaries for {', '.join(batch)}: {e.detail}")
                failed.extend(batch)

        if failed:
            logger.error(f"❌ Failed to generate summaries for {len(failed)} SKUs: {', '.join(failed)}")
            if not summaries:
                raise SourceUnavailableError(f"Could not generate summaries for any of {len(failed)} SKUs")

        return summaries

    async def generate_all_summaries(self) -> List[ReconciliationSummary]:
        skus = await self.read_source(self.list_skus(), "SKU list")
        logger.info(f"Generating reconciliation summaries for {len(skus)} SKUs")

        summaries = await self.generate_summaries(skus)
        logger.info(f"✅ Generated {len(summaries)} reconciliation summaries")
        return summaries

    async def perform_reconciliation(
        self, data: StockReconciliationCreate, created_by: Optional[str] = None
    ) -> StockReconciliation:
        """Record a physical count and book any difference as a correction adjustment"""
        movements = await self.movement_service.get_movements_by_sku(data.sku)
        expected_quantity = aggregate_movements(movements).expected_stock
        discrepancy = data.actual_quantity - expected_quantity

        logger.info(
            f"Reconciliation for SKU {data.sku}: Expected={expected_quantity}, "
            f"Actual={data.actual_quantity}, Discrepancy={discrepancy}"
        )

        reconciliation = StockReconciliation(
            sku=data.sku,
            reconciliation_date=datetime.now(timezone.utc),
            expected_quantity=expected_quantity,
            actual_quantity=data.actual_quantity,
            discrepancy=discrepancy,
            notes=data.notes,
            created_by=created_by,
        )
        self.db.add(reconciliation)
        await self.db.commit()
        await self.db.refresh(reconciliation)

        if discrepancy != 0:
            await self.movement_service.create_stock_movement(StockMovementCreate(
                sku=data.sku,
                quantity=discrepancy,
                movement_type=MovementType.ADJUSTMENT,
                reason=MovementReason.CORRECTION,
                notes=f"Automatic adjustment from reconciliation #{reconciliation.id}. {data.notes or ''}".strip(),
                created_by=created_by,
            ))

        return reconciliation

    async def get_reconciliation_history(self, sku: str) -> List[StockReconciliation]:
        result = await self.db.execute(
            select(StockReconciliation)
            .where(StockReconciliation.sku == sku)
            .order_by(desc(StockReconciliation.reconciliation_date), desc(StockReconciliation.id))
        )
        return list(result.scalars().all())
