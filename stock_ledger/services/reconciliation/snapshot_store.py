import logging
from typing import Optional
from redis.exceptions import RedisError
from stock_ledger.core.config import settings
from stock_ledger.schemas.inventory.reconciliation import SummarySnapshot

logger = logging.getLogger(__name__)

class SummarySnapshotStore:
    """Keeps the last known-good summary set in Redis for cold starts"""

    def __init__(self, client, key: Optional[str] = None):
        self.client = client
        self.key = key or settings.SUMMARY_SNAPSHOT_KEY

    async def load(self) -> Optional[SummarySnapshot]:
        try:
            raw = await self.client.get(self.key)
        except (RedisError, OSError) as e:
            logger.error(f"❌ Could not read summary snapshot: {str(e)}")
            return None

        if not raw:
            return None

        try:
            return SummarySnapshot.model_validate_json(raw)
        except ValueError as e:
            logger.error(f"❌ Error parsing cached summary snapshot: {str(e)}")
            return None

    async def save(self, snapshot: SummarySnapshot) -> bool:
        try:
            # No expiry: a stale snapshot is still served until replaced
            await self.client.set(self.key, snapshot.model_dump_json(by_alias=True))
            return True
        except (RedisError, OSError) as e:
            logger.error(f"❌ Could not write summary snapshot: {str(e)}")
            return False

