import logging
from typing import Optional
import redis.asyncio as redis
from redis.exceptions import RedisError
from stock_ledger.core.config import settings

logger = logging.getLogger(__name__)

class RedisClient:
    """Lazily connected Redis client holding the summary snapshot"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis = None

    async def connect(self):
        try:
            self.redis = redis.from_url(self.url, encoding="utf-8", decode_responses=True)
            await self.redis.ping()
            logger.info("✅ Redis connected successfully")
        except (RedisError, OSError) as e:
            self.redis = None
            logger.error(f"❌ Redis connection failed: {str(e)}")
            raise

    async def disconnect(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis disconnected")

    async def _client(self):
        if not self.redis:
            await self.connect()
        return self.redis

    async def ping(self) -> bool:
        try:
            return bool(await (await self._client()).ping())
        except (RedisError, OSError):
            return False

    async def get(self, key: str) -> Optional[str]:
        return await (await self._client()).get(key)

    async def set(self, key: str, value: str, expire: Optional[int] = None):
        """Store a value; no expiry unless one is given"""
        return await (await self._client()).set(key, value, ex=expire)

    async def delete(self, key: str):
        return await (await self._client()).delete(key)

# Global Redis client instance
redis_client = RedisClient()
