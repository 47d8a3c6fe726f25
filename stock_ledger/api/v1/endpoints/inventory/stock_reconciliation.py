import logging
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from stock_ledger.api.dependencies import get_operator, get_reconciliation_service, get_summary_cache
from stock_ledger.core.database import get_async_session
from stock_ledger.core.exceptions import ValidationError
from stock_ledger.schemas.finance.posting import PendingPosting
from stock_ledger.schemas.inventory.order import Order, PurchaseOrder
from stock_ledger.schemas.inventory.reconciliation import (
    CleanupResult, ImportResult, MovementProcessingResult, ReconciliationSummary, StockReconciliation,
    StockReconciliationCreate, SubmitMovementRequest, SubmitMovementResponse, SummaryListResponse, SummarySnapshot,
)
from stock_ledger.schemas.inventory.stock_movement import StockMovement
from stock_ledger.services.inventory.movement_import_service import MovementImportService
from stock_ledger.services.reconciliation.stock_reconciliation_service import StockReconciliationService
from stock_ledger.services.reconciliation.summary_cache import SummaryCache

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/movements", response_model=SubmitMovementResponse, status_code=status.HTTP_201_CREATED)
async def submit_movement(
    request: SubmitMovementRequest,
    operator: Optional[str] = Depends(get_operator),
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    """
    Record a stock movement.

    Negative expiry adjustments take an ``expiry`` block with the manual sale
    or disposal details. A 207 response means the movement was recorded but a
    financial posting was left pending.
    """
    if request.movement.created_by is None:
        request.movement.created_by = operator
    return await service.submit_movement(request)

@router.get("/movements/sku/{sku}", response_model=List[StockMovement])
async def get_movements_by_sku(
    sku: str,
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    """Get the movement ledger of a SKU, newest first"""
    return await service.get_movements_by_sku(sku)

@router.delete("/movements/{movement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_movement(
    movement_id: int,
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    """Delete a movement entered in error"""
    await service.delete_movement(movement_id)

@router.get("/summaries", response_model=SummaryListResponse)
async def get_summaries(
    force_refresh: bool = Query(False),
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    """Reconciliation summaries for every SKU, served from cache unless forced"""
    return await service.get_summaries(force_refresh)

@router.get("/summaries/{sku}", response_model=ReconciliationSummary)
async def get_summary(
    sku: str,
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    return await service.get_summary(sku)

@router.get("/snapshot", response_model=SummarySnapshot, response_model_by_alias=True)
async def get_snapshot(cache: SummaryCache = Depends(get_summary_cache)):
    """Current cache contents without triggering a recompute"""
    return cache.snapshot()

@router.post("/reconcile", response_model=StockReconciliation, status_code=status.HTTP_201_CREATED)
async def perform_reconciliation(
    data: StockReconciliationCreate,
    operator: Optional[str] = Depends(get_operator),
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    """Record a physical count; any discrepancy is booked as a correction adjustment"""
    return await service.perform_reconciliation(data, operator)

@router.get("/history/{sku}", response_model=List[StockReconciliation])
async def get_reconciliation_history(
    sku: str,
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    return await service.get_reconciliation_history(sku)

@router.get("/pending-postings", response_model=List[PendingPosting])
async def list_pending_postings(
    sku: Optional[str] = Query(None),
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    """Financial postings that failed after their movement was recorded"""
    return await service.list_pending_postings(sku)

@router.post("/pending-postings/{pending_id}/retry", response_model=PendingPosting)
async def retry_pending_posting(
    pending_id: int,
    service: StockReconciliationService = Depends(get_reconciliation_service),
):
    return await service.retry_posting(pending_id)

@router.post("/import/initial-stock", response_model=ImportResult)
async def import_initial_stock(
    file: UploadFile = File(...),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_async_session),
    cache: SummaryCache = Depends(get_summary_cache),
):
    """Import opening stock from a ``sku,quantity,notes`` CSV file"""
    raw = await file.read()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise ValidationError("CSV file must be UTF-8 encoded")

    service = MovementImportService(db, cache)
    return await service.import_initial_stock_csv(content, operator)

@router.post("/import/orders", response_model=MovementProcessingResult)
async def import_orders(
    orders: List[Order],
    db: AsyncSession = Depends(get_async_session),
    cache: SummaryCache = Depends(get_summary_cache),
):
    """Record sale movements for completed and processing orders"""
    service = MovementImportService(db, cache)
    return await service.process_multiple_orders(orders)

@router.post("/import/purchase-orders", response_model=MovementProcessingResult)
async def import_purchase_order(
    purchase_order: PurchaseOrder,
    db: AsyncSession = Depends(get_async_session),
    cache: SummaryCache = Depends(get_summary_cache),
):
    """Record purchase movements for the received items of a purchase order"""
    service = MovementImportService(db, cache)
    return await service.process_purchase_order_stock_movements(purchase_order)

@router.post("/cleanup/duplicate-sales", response_model=CleanupResult)
async def cleanup_duplicate_sales(
    db: AsyncSession = Depends(get_async_session),
    cache: SummaryCache = Depends(get_summary_cache),
):
    """Remove repeated imports of the same order line, keeping the oldest"""
    service = MovementImportService(db, cache)
    result = await service.cleanup_duplicate_sales()
    logger.info(f"Duplicate sale cleanup removed {result.removed} movements")
    return result
