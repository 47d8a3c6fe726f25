"""
Background reconciliation jobs: the periodic silent summary refresh that keeps
the Redis snapshot warm, and retries of financial postings left pending.
"""
import asyncio
import logging
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from stock_ledger.core.celery_app import celery_app
from stock_ledger.core.config import settings
from stock_ledger.core.redis import RedisClient

logger = logging.getLogger(__name__)

# Each task runs on its own event loop, so connections are not pooled across tasks
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    poolclass=NullPool,
)

async_session_maker = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

def run_async_in_celery(coro):
    """Run a coroutine on a fresh event loop inside a Celery worker"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.error(f"❌ Error in async task execution: {e}")
        raise
    finally:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()

@celery_app.task(bind=True)
def refresh_reconciliation_summaries(self):
    """Recompute every summary and persist the snapshot; failures keep the old snapshot"""
    async def _refresh():
        from stock_ledger.services.reconciliation.snapshot_store import SummarySnapshotStore
        from stock_ledger.services.reconciliation.summary_cache import SummaryCache

        client = RedisClient()
        try:
            cache = SummaryCache(async_session_maker, SummarySnapshotStore(client))
            summaries = await cache.load_silently(force_refresh=True)
        finally:
            await client.disconnect()

        if cache.last_error:
            return f"⚠️ Summary refresh failed: {cache.last_error}"
        return f"✅ Refreshed {len(summaries)} reconciliation summaries"

    return run_async_in_celery(_refresh())

@celery_app.task(bind=True)
def retry_pending_postings(self):
    """Retry every financial posting still pending"""
    async def _retry():
        from stock_ledger.services.finance.financial_ledger_service import FinancialLedgerService

        posted, failed = 0, 0
        async with async_session_maker() as db:
            ledger = FinancialLedgerService(db)
            pending_ids = [pending.id for pending in await ledger.get_pending_postings()]
            for pending_id in pending_ids:
                try:
                    await ledger.retry_pending_posting(pending_id)
                    posted += 1
                except Exception as e:
                    # The failure is already stored on the marker
                    logger.warning(f"⚠️ Pending posting {pending_id} still failing: {e}")
                    failed += 1

        return f"✅ Pending postings retried: {posted} posted, {failed} still pending"

    return run_async_in_celery(_retry())
