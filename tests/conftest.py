import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

import pytest
from decimal import Decimal
from typing import AsyncGenerator, Optional
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from main import app
from stock_ledger.api.dependencies import get_summary_cache
from stock_ledger.core.database import get_async_session
from stock_ledger.models import Base, FinancialCategory, Product
from stock_ledger.models.shared.enums import MovementReason, MovementType, PostingKind
from stock_ledger.schemas.inventory.stock_movement import StockMovementCreate
from stock_ledger.services.inventory.stock_movement_service import StockMovementService
from stock_ledger.services.reconciliation.snapshot_store import SummarySnapshotStore
from stock_ledger.services.reconciliation.summary_cache import SummaryCache

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite://"

class FakeRedis:
    """In-memory stand-in for RedisClient"""

    def __init__(self):
        self.store = {}
        self.available = True

    def _check(self):
        if not self.available:
            raise RedisConnectionError("Redis is down")

    async def get(self, key: str):
        self._check()
        return self.store.get(key)

    async def set(self, key: str, value: str, expire: int = None):
        self._check()
        self.store[key] = value
        return True

    async def delete(self, key: str):
        self._check()
        return 1 if self.store.pop(key, None) is not None else 0

class Seeder:
    """Shortcuts for putting catalog rows and movements in the test database"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def product(
        self,
        sku: str,
        name: str = "Test Product",
        stock_quantity: Optional[int] = None,
        supplier_price: Optional[str] = None,
        **kwargs,
    ) -> Product:
        async with self.session_factory() as db:
            product = Product(
                sku=sku,
                name=name,
                stock_quantity=stock_quantity,
                supplier_price=Decimal(supplier_price) if supplier_price is not None else None,
                **kwargs,
            )
            db.add(product)
            await db.commit()
            await db.refresh(product)
            return product

    async def movement(self, sku: str, quantity: int, movement_type: MovementType, reason: MovementReason = None, **kwargs):
        async with self.session_factory() as db:
            return await StockMovementService(db).create_stock_movement(StockMovementCreate(
                sku=sku, quantity=quantity, movement_type=movement_type, reason=reason, **kwargs
            ))

    async def categories(self):
        async with self.session_factory() as db:
            db.add_all([
                FinancialCategory(name="Manual Sale", kind=PostingKind.REVENUE),
                FinancialCategory(name="Expired Products", kind=PostingKind.EXPENSE),
            ])
            await db.commit()

@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()

@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session

@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)

@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()

@pytest.fixture
def snapshot_store(fake_redis) -> SummarySnapshotStore:
    return SummarySnapshotStore(fake_redis, key="test:stock_reconciliation:snapshot")

@pytest.fixture
def cache(session_factory, snapshot_store) -> SummaryCache:
    return SummaryCache(session_factory, snapshot_store)

@pytest.fixture
async def client(session_factory, cache) -> AsyncGenerator[AsyncClient, None]:
    """Create test client"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_summary_cache] = lambda: cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
