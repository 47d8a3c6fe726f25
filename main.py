import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from stock_ledger.core.config import settings
from stock_ledger.core.logging_config import setup_logging
from stock_ledger.core.database import check_database, engine
from stock_ledger.core.redis import redis_client
from stock_ledger.api.v1.api import api_router
from stock_ledger.services.reconciliation.summary_cache import summary_cache

logger = logging.getLogger(__name__)

async def refresh_summaries_periodically(interval: float):
    """Silent full recompute on a fixed interval; failures keep the cached set"""
    while True:
        await asyncio.sleep(interval)
        await summary_cache.load_silently(force_refresh=True)

async def initial_load():
    if await summary_cache.warm_from_snapshot():
        # Snapshot already covers the summaries, only product data is refreshed
        await summary_cache.load_silently(force_refresh=False, include_reconciliation=False)
    else:
        await summary_cache.load_silently(force_refresh=False)

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("✅ Stock ledger starting")

    background = [
        asyncio.create_task(initial_load()),
        asyncio.create_task(refresh_summaries_periodically(settings.SUMMARY_REFRESH_INTERVAL_SECONDS)),
    ]
    yield

    for task in background:
        task.cancel()
    for task in background:
        with suppress(asyncio.CancelledError):
            await task
    await redis_client.disconnect()
    await engine.dispose()
    logger.info("Stock ledger stopped")

# Create FastAPI app
app_config = {
    "title": "Stock Movement Ledger",
    "description": "Stock movement ledger with reconciliation against reported stock",
    "version": "1.0.0",
    "lifespan": lifespan,
}

app = FastAPI(**app_config)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": "Stock Movement Ledger",
        "status": "active",
        "version": "1.0.0",
        "docs": "/docs",
    }

@app.get("/health")
async def health_check():
    database_ok = await check_database()
    redis_ok = await redis_client.ping()
    return {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "database": "connected" if database_ok else "unavailable",
            "redis": "connected" if redis_ok else "unavailable",
            "summary_cache": summary_cache.state.value,
            "summary_cache_updated": summary_cache.last_updated.isoformat() if summary_cache.last_updated else None,
            "summary_cache_error": summary_cache.last_error,
        },
    }

def run_http():
    """Run HTTP server on port 9106"""
    import uvicorn
    logger.info("🚀 Starting HTTP server on port 9106...")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=9106,
        reload=False,
    )

if __name__ == "__main__":
    run_http()
