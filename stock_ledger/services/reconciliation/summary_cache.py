"""
Memoized reconciliation summaries.

Each cache key ("all", or "sku:<sku>") moves through
``EMPTY -> POPULATED -> STALE -> POPULATED``. STALE is advisory: a stale entry
is still served until a caller forces a refresh. There is no TTL and
``last_updated`` is only for display.

Recomputation of a key is single-flight: a caller arriving while one is in
flight awaits the same task, and the result replaces the entry in one step.
Every successful full recompute is mirrored to a durable snapshot so a cold
process can serve the last known-good set before recomputing.
"""
import asyncio
import functools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from stock_ledger.core.database import async_session_maker
from stock_ledger.core.redis import redis_client
from stock_ledger.schemas.inventory.reconciliation import ProductRef, ReconciliationSummary, SummarySnapshot
from stock_ledger.services.inventory.product_service import ProductService
from stock_ledger.services.reconciliation.reconciler import ReconciliationService
from stock_ledger.services.reconciliation.snapshot_store import SummarySnapshotStore

logger = logging.getLogger(__name__)

ALL_SUMMARIES = "all"
PRODUCTS = "products"


def sku_key(sku: str) -> str:
    return f"sku:{sku}"


class CacheState(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"
    STALE = "stale"


@dataclass(frozen=True)
class CacheEntry:
    state: CacheState = CacheState.EMPTY
    summaries: Tuple[ReconciliationSummary, ...] = ()
    last_updated: Optional[datetime] = None


class SummaryCache:
    def __init__(self, session_factory, snapshot_store: Optional[SummarySnapshotStore] = None, timeout: Optional[float] = None):
        self.session_factory = session_factory
        self.snapshot_store = snapshot_store
        self.timeout = timeout
        self.last_error: Optional[str] = None
        self._entries: Dict[str, CacheEntry] = {}
        self._products: Tuple[ProductRef, ...] = ()
        self._inflight: Dict[str, asyncio.Future] = {}

    def entry(self, key: str = ALL_SUMMARIES) -> CacheEntry:
        return self._entries.get(key, CacheEntry())

    @property
    def state(self) -> CacheState:
        return self.entry().state

    @property
    def last_updated(self) -> Optional[datetime]:
        return self.entry().last_updated

    @property
    def products(self) -> List[ProductRef]:
        return list(self._products)

    def is_refreshing(self, key: str = ALL_SUMMARIES) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    async def _single_flight(self, key: str, factory: Callable[[], Awaitable]):
        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        else:
            logger.info(f"Joining in-flight recompute of '{key}'")
        # Shielded so one cancelled waiter does not cancel the shared task
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Future):
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _recompute_all(self) -> Tuple[ReconciliationSummary, ...]:
        async with self.session_factory() as db:
            service = ReconciliationService(db, timeout=self.timeout)
            summaries = tuple(await service.generate_all_summaries())
            products = tuple(await service.read_source(ProductService(db).get_product_refs(), "catalog"))

        self._entries = {ALL_SUMMARIES: CacheEntry(CacheState.POPULATED, summaries, datetime.now(timezone.utc))}
        self._products = products
        await self._save_snapshot()
        return summaries

    async def _refresh_products(self) -> Tuple[ProductRef, ...]:
        async with self.session_factory() as db:
            service = ReconciliationService(db, timeout=self.timeout)
            self._products = tuple(await service.read_source(ProductService(db).get_product_refs(), "catalog"))
        await self._save_snapshot()
        return self._products

    async def _recompute_sku(self, sku: str) -> Optional[ReconciliationSummary]:
        async with self.session_factory() as db:
            summary = await ReconciliationService(db, timeout=self.timeout).generate_summary(sku)

        now = datetime.now(timezone.utc)
        self._entries[sku_key(sku)] = CacheEntry(CacheState.POPULATED, (summary,) if summary else (), now)

        entry = self.entry()
        if entry.state != CacheState.EMPTY:
            rows = list(entry.summaries)
            index = next((i for i, row in enumerate(rows) if row.sku == sku), None)
            if summary is None:
                if index is not None:
                    rows.pop(index)
            elif index is None:
                rows.append(summary)
            else:
                rows[index] = summary
            self._entries[ALL_SUMMARIES] = CacheEntry(entry.state, tuple(rows), entry.last_updated)
            await self._save_snapshot()

        return summary

    async def _save_snapshot(self):
        entry = self.entry()
        if self.snapshot_store is None or entry.state == CacheState.EMPTY:
            return
        await self.snapshot_store.save(SummarySnapshot(
            summaries=list(entry.summaries),
            products=list(self._products),
            last_updated=entry.last_updated,
        ))

    async def warm_from_snapshot(self) -> bool:
        """Serve the last persisted summary set until the first recompute finishes"""
        if self.snapshot_store is None or self.state != CacheState.EMPTY:
            return False

        snapshot = await self.snapshot_store.load()
        if snapshot is None:
            return False

        self._entries[ALL_SUMMARIES] = CacheEntry(CacheState.STALE, tuple(snapshot.summaries), snapshot.last_updated)
        self._products = tuple(snapshot.products)
        logger.info(f"Loaded {len(snapshot.summaries)} cached summaries from snapshot taken {snapshot.last_updated}")
        return True

    async def load(self, force_refresh: bool = False) -> List[ReconciliationSummary]:
        """Cached summaries, recomputed when forced or when nothing is cached. Errors propagate."""
        entry = self.entry()
        if not force_refresh and entry.state != CacheState.EMPTY:
            logger.debug(f"Using cached reconciliation data from {entry.last_updated}")
            return list(entry.summaries)

        logger.info("Cache empty or force refresh requested, fetching fresh data")
        summaries = await self._single_flight(ALL_SUMMARIES, self._recompute_all)
        self.last_error = None
        return list(summaries)

    async def load_silently(self, force_refresh: bool = False, include_reconciliation: bool = True) -> List[ReconciliationSummary]:
        """
        Background variant of load(): failures are logged and kept in
        ``last_error`` while the existing cached data keeps being served.
        With include_reconciliation=False only the product list is refreshed.
        """
        try:
            if include_reconciliation:
                return await self.load(force_refresh)
            if force_refresh or not self._products:
                await self._single_flight(PRODUCTS, self._refresh_products)
        except Exception as e:
            self.last_error = str(getattr(e, "detail", e))
            logger.error(f"❌ Background reconciliation refresh failed: {self.last_error}")
        return list(self.entry().summaries)

    async def get_summary(self, sku: str) -> Optional[ReconciliationSummary]:
        entry = self.entry()
        if entry.state != CacheState.EMPTY:
            return next((row for row in entry.summaries if row.sku == sku), None)

        sku_entry = self.entry(sku_key(sku))
        if sku_entry.state != CacheState.EMPTY:
            return sku_entry.summaries[0] if sku_entry.summaries else None

        return await self._single_flight(sku_key(sku), functools.partial(self._recompute_sku, sku))

    async def refresh_sku(self, sku: str) -> Optional[ReconciliationSummary]:
        """
        Replay one SKU's ledger and swap its row into the cached set.

        Recomputes already in flight may have read the ledger before the
        caller's latest write, so they are allowed to land first.
        """
        for key in (ALL_SUMMARIES, sku_key(sku)):
            task = self._inflight.get(key)
            if task is not None and not task.done():
                try:
                    await asyncio.shield(task)
                except Exception as e:
                    logger.warning(f"⚠️ In-flight recompute of '{key}' failed before refreshing SKU {sku}: {e}")

        return await self._single_flight(sku_key(sku), functools.partial(self._recompute_sku, sku))

    def mark_stale(self, sku: Optional[str] = None):
        keys = [ALL_SUMMARIES] + ([sku_key(sku)] if sku else [])
        for key in keys:
            entry = self._entries.get(key)
            if entry and entry.state == CacheState.POPULATED:
                self._entries[key] = CacheEntry(CacheState.STALE, entry.summaries, entry.last_updated)

    def snapshot(self) -> SummarySnapshot:
        entry = self.entry()
        return SummarySnapshot(summaries=list(entry.summaries), products=list(self._products), last_updated=entry.last_updated)


# Global summary cache instance
summary_cache = SummaryCache(async_session_maker, SummarySnapshotStore(redis_client))
