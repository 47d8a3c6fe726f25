import asyncio
import pytest
from datetime import datetime, timezone
from stock_ledger.core.exceptions import SourceUnavailableError
from stock_ledger.models.shared.enums import MovementType
from stock_ledger.schemas.inventory.reconciliation import ReconciliationSummary, SummarySnapshot
from stock_ledger.services.reconciliation.reconciler import ReconciliationService
from stock_ledger.services.reconciliation.summary_cache import CacheState, SummaryCache

def summary(sku: str, actual: int = 5, expected: int = 5) -> ReconciliationSummary:
    return ReconciliationSummary(
        sku=sku,
        product_name=f"Product {sku}",
        initial_stock=expected,
        expected_stock=expected,
        actual_stock=actual,
        discrepancy=actual - expected,
        last_reconciled=datetime(2026, 5, 1, tzinfo=timezone.utc),
    )

@pytest.fixture
def recompute_calls(monkeypatch):
    """Counts full recomputes; each one yields to the loop before finishing"""
    calls = []

    async def fake_generate_all(self):
        calls.append(1)
        await asyncio.sleep(0.05)
        return [summary("SKU-1")]

    monkeypatch.setattr(ReconciliationService, "generate_all_summaries", fake_generate_all)
    return calls

@pytest.mark.asyncio
class TestSummaryCache:
    """Cache states, single flight and background loading"""

    async def test_load_populates_and_persists_snapshot(self, cache, seed, snapshot_store):
        await seed.product("SKU-1", name="Widget", stock_quantity=4)
        await seed.movement("SKU-1", 4, MovementType.INITIAL)

        assert cache.state == CacheState.EMPTY
        summaries = await cache.load()

        assert [s.sku for s in summaries] == ["SKU-1"]
        assert cache.state == CacheState.POPULATED
        assert cache.last_updated is not None
        assert [p.sku for p in cache.products] == ["SKU-1"]

        snapshot = await snapshot_store.load()
        assert [s.sku for s in snapshot.summaries] == ["SKU-1"]
        assert snapshot.last_updated == cache.last_updated

    async def test_cached_data_is_served_without_recompute(self, cache, recompute_calls):
        await cache.load()
        await cache.load()
        assert len(recompute_calls) == 1

        await cache.load(force_refresh=True)
        assert len(recompute_calls) == 2

    async def test_concurrent_loads_share_one_recompute(self, cache, recompute_calls):
        results = await asyncio.gather(
            cache.load(force_refresh=True),
            cache.load(force_refresh=True),
            cache.load(),
        )

        assert len(recompute_calls) == 1
        assert all([s.sku for s in result] == ["SKU-1"] for result in results)
        assert not cache.is_refreshing()

    async def test_load_propagates_source_errors(self, cache, monkeypatch):
        async def unavailable(self):
            raise SourceUnavailableError("ledger store down")

        monkeypatch.setattr(ReconciliationService, "generate_all_summaries", unavailable)

        with pytest.raises(SourceUnavailableError):
            await cache.load()
        assert cache.state == CacheState.EMPTY

    async def test_silent_load_keeps_serving_cached_data(self, cache, recompute_calls, monkeypatch):
        await cache.load()

        async def unavailable(self):
            raise SourceUnavailableError("ledger store down")

        monkeypatch.setattr(ReconciliationService, "generate_all_summaries", unavailable)

        summaries = await cache.load_silently(force_refresh=True)

        assert [s.sku for s in summaries] == ["SKU-1"]
        assert cache.state == CacheState.POPULATED
        assert cache.last_error == "ledger store down"

    async def test_silent_product_refresh_leaves_summaries_alone(self, cache, seed, recompute_calls):
        await seed.product("SKU-7", name="Gadget", stock_quantity=2)

        summaries = await cache.load_silently(force_refresh=False, include_reconciliation=False)

        assert summaries == []
        assert recompute_calls == []
        assert [p.sku for p in cache.products] == ["SKU-7"]

    async def test_mark_stale_keeps_data(self, cache, recompute_calls):
        await cache.load()
        cache.mark_stale()

        assert cache.state == CacheState.STALE
        assert [s.sku for s in await cache.load()] == ["SKU-1"]
        assert len(recompute_calls) == 1

    async def test_refresh_sku_replaces_only_that_row(self, cache, seed):
        await seed.product("SKU-1", stock_quantity=10)
        await seed.product("SKU-2", stock_quantity=3)
        await seed.movement("SKU-1", 10, MovementType.INITIAL)
        await seed.movement("SKU-2", 3, MovementType.INITIAL)
        before = await cache.load()

        await seed.movement("SKU-1", -2, MovementType.SALE)
        cache.mark_stale("SKU-1")
        refreshed = await cache.refresh_sku("SKU-1")

        after = await cache.load()
        assert refreshed.expected_stock == 8
        assert [s.sku for s in after] == [s.sku for s in before]
        assert after[0].discrepancy == 2
        assert after[1] == before[1]

    async def test_get_summary_for_single_sku_when_empty(self, cache, seed, recompute_calls):
        await seed.product("SKU-3", stock_quantity=1)

        result = await cache.get_summary("SKU-3")

        assert result.sku == "SKU-3"
        assert recompute_calls == []
        assert cache.state == CacheState.EMPTY

@pytest.mark.asyncio
class TestSnapshotWarmStart:

    async def test_cold_start_serves_snapshot(self, session_factory, snapshot_store, monkeypatch):
        taken = datetime(2026, 4, 2, 8, 30, tzinfo=timezone.utc)
        await snapshot_store.save(SummarySnapshot(summaries=[summary("SKU-1", actual=4)], last_updated=taken))

        async def unavailable(self):
            raise SourceUnavailableError("ledger store down")

        monkeypatch.setattr(ReconciliationService, "generate_all_summaries", unavailable)

        cache = SummaryCache(session_factory, snapshot_store)
        assert await cache.warm_from_snapshot() is True

        assert cache.state == CacheState.STALE
        assert cache.last_updated == taken
        assert [s.discrepancy for s in await cache.load()] == [-1]

    async def test_no_snapshot(self, cache):
        assert await cache.warm_from_snapshot() is False
        assert cache.state == CacheState.EMPTY

    async def test_corrupt_snapshot_is_ignored(self, cache, fake_redis, snapshot_store):
        fake_redis.store[snapshot_store.key] = "{not json"
        assert await cache.warm_from_snapshot() is False

    async def test_unreachable_snapshot_store(self, cache, fake_redis, recompute_calls):
        fake_redis.available = False

        assert await cache.warm_from_snapshot() is False
        # Recompute still succeeds when the snapshot cannot be written
        assert [s.sku for s in await cache.load()] == ["SKU-1"]
