import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from stock_ledger.core.exceptions import NotFoundError, PostingPartialFailure, SourceUnavailableError
from stock_ledger.models.finance.pending_posting import PendingPosting
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.models.inventory.stock_reconciliation import StockReconciliation
from stock_ledger.schemas.inventory.reconciliation import (
    ReconciliationSummary, StockReconciliationCreate, SubmitMovementRequest, SubmitMovementResponse,
    SummaryListResponse,
)
from stock_ledger.services.finance.financial_ledger_service import FinancialLedgerService
from stock_ledger.services.inventory.stock_movement_service import StockMovementService
from stock_ledger.services.reconciliation.expiry_dispatcher import ExpiryDispatcher
from stock_ledger.services.reconciliation.reconciler import ReconciliationService
from stock_ledger.services.reconciliation.summary_cache import SummaryCache

logger = logging.getLogger(__name__)

class StockReconciliationService:
    """Entry point for recording movements and reading reconciliation summaries"""

    def __init__(
        self,
        db: AsyncSession,
        cache: SummaryCache,
        require_loss_amount: Optional[bool] = None,
        post_net_loss: Optional[bool] = None,
    ):
        self.db = db
        self.cache = cache
        self.movement_service = StockMovementService(db)
        self.ledger = FinancialLedgerService(db)
        self.reconciliation_service = ReconciliationService(db)
        self.dispatcher = ExpiryDispatcher(db, require_loss_amount=require_loss_amount, post_net_loss=post_net_loss)

    async def _refresh_quietly(self, sku: str) -> Optional[ReconciliationSummary]:
        """A failed summary refresh never undoes a write that already happened"""
        try:
            return await self.cache.refresh_sku(sku)
        except SourceUnavailableError as e:
            logger.warning(f"⚠️ Summary refresh for SKU {sku} failed, cached row left stale: {e.detail}")
            return None

    async def submit_movement(self, request: SubmitMovementRequest) -> SubmitMovementResponse:
        """
        Record a movement, make its expiry postings and refresh the SKU's summary.

        Validation (including the expiry amounts) happens before anything is
        written. If the movement is recorded but a posting fails, the summary is
        still refreshed and PostingPartialFailure is raised afterwards.
        """
        plan = await self.dispatcher.plan(request.movement, request.expiry)

        movement = await self.movement_service.create_stock_movement(request.movement)
        movement_id, sku = movement.id, movement.sku
        self.cache.mark_stale(sku)

        partial_failure: Optional[PostingPartialFailure] = None
        posting_ids: List[int] = []
        try:
            postings = await self.dispatcher.dispatch(movement, plan)
            posting_ids = [posting.id for posting in postings]
        except PostingPartialFailure as e:
            partial_failure = e

        summary = await self._refresh_quietly(sku) if request.refresh_summary else None

        if partial_failure is not None:
            raise partial_failure

        return SubmitMovementResponse(movement_id=movement_id, summary=summary, posting_ids=posting_ids)

    async def get_summaries(self, force_refresh: bool = False) -> SummaryListResponse:
        summaries = await self.cache.load(force_refresh)
        return SummaryListResponse(
            summaries=summaries,
            last_updated=self.cache.last_updated,
            state=self.cache.state.value,
        )

    async def get_summary(self, sku: str) -> ReconciliationSummary:
        summary = await self.cache.get_summary(sku)
        if summary is None:
            raise NotFoundError(f"No reconciliation summary for SKU {sku}")
        return summary

    async def get_movements_by_sku(self, sku: str) -> List[StockMovement]:
        return await self.movement_service.get_movements_by_sku(sku)

    async def delete_movement(self, movement_id: int) -> None:
        movement = await self.movement_service.delete_stock_movement(movement_id)
        sku = movement.sku
        self.cache.mark_stale(sku)
        await self._refresh_quietly(sku)

    async def perform_reconciliation(
        self, data: StockReconciliationCreate, created_by: Optional[str] = None
    ) -> StockReconciliation:
        reconciliation = await self.reconciliation_service.perform_reconciliation(data, created_by)
        self.cache.mark_stale(data.sku)
        await self._refresh_quietly(data.sku)
        return reconciliation

    async def get_reconciliation_history(self, sku: str) -> List[StockReconciliation]:
        return await self.reconciliation_service.get_reconciliation_history(sku)

    async def list_pending_postings(self, sku: Optional[str] = None) -> List[PendingPosting]:
        return await self.ledger.get_pending_postings(sku)

    async def retry_posting(self, pending_id: int) -> PendingPosting:
        return await self.ledger.retry_pending_posting(pending_id)
