from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from stock_ledger.core.database import get_async_session
from stock_ledger.services.reconciliation.stock_reconciliation_service import StockReconciliationService
from stock_ledger.services.reconciliation.summary_cache import SummaryCache, summary_cache

def get_summary_cache() -> SummaryCache:
    """Process-wide summary cache"""
    return summary_cache

async def get_operator(x_operator: Optional[str] = Header(None)) -> Optional[str]:
    """Name recorded as created_by on ledger writes"""
    return x_operator.strip() if x_operator and x_operator.strip() else None

async def get_reconciliation_service(
    db: AsyncSession = Depends(get_async_session),
    cache: SummaryCache = Depends(get_summary_cache),
) -> StockReconciliationService:
    return StockReconciliationService(db, cache)
