import json
import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from redis import asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisRateCache:
    """Short-lived snapshot of the fresh cached USD rates.

    Fronts the attempt store so request bursts do not each scan it. Any Redis
    or decoding problem is logged and reported as a miss.
    """

    SNAPSHOT_KEY = 'rates:usd:cached'

    def __init__(self, redis_client: redis.Redis, ttl: timedelta = timedelta(seconds=60)):
        self.redis = redis_client
        self.ttl = ttl

    async def get_cached_rates(self) -> dict[str, Decimal] | None:
        try:
            data = await self.redis.get(self.SNAPSHOT_KEY)
        except RedisError as e:
            logger.warning(f'Redis read failed, ignoring rate snapshot: {e}')
            return None

        if not data:
            return None

        try:
            return {code: Decimal(value) for code, value in json.loads(data).items()}
        except (ValueError, TypeError, AttributeError, InvalidOperation) as e:
            logger.warning(f'Discarding unreadable rate snapshot: {e}')
            return None

    async def set_cached_rates(self, rates: dict[str, Decimal]) -> None:
        payload = json.dumps({code: str(value) for code, value in rates.items()})
        try:
            await self.redis.setex(self.SNAPSHOT_KEY, self.ttl, payload)
        except RedisError as e:
            logger.warning(f'Redis write failed, rate snapshot not stored: {e}')

    async def invalidate(self) -> None:
        try:
            await self.redis.delete(self.SNAPSHOT_KEY)
        except RedisError as e:
            logger.warning(f'Redis delete failed, rate snapshot may be stale: {e}')

    async def close(self) -> None:
        await self.redis.aclose()
