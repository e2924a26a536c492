"""
Redis Counter Store
Rate limit counters on Redis (INCR + EXPIRE NX in one pipeline)
"""
from __future__ import annotations

from typing import Sequence

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.shared.exceptions import StoreUnavailableError
from src.shared.infrastructure.observability.logger import get_logger
from src.sms.domain.protocols.counter_store import CounterStore

logger = get_logger(__name__)

# Connection-level failures surface as RedisError subclasses, but a dropped
# socket can also leak OSError / TimeoutError from the transport.
_STORE_ERRORS = (RedisError, OSError, TimeoutError)


class RedisCounterStore(CounterStore):
    """
    Async Redis implementation of the counter store.

    Attributes:
        redis: Async Redis client (decode_responses may be on or off)
    """

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def get(self, key: str) -> int:
        try:
            value = await self.redis.get(key)
        except _STORE_ERRORS as e:
            logger.error("Redis GET failed", key=key, error=str(e))
            raise StoreUnavailableError("Counter store unavailable", details={"operation": "get"}) from e
        return int(value) if value is not None else 0

    async def increment_and_expire(self, entries: Sequence[tuple[str, int]]) -> list[int]:
        """
        INCR every key and set its TTL only if it has none yet.

        Requires Redis 7+ for ``EXPIRE ... NX``.
        """
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                for key, ttl in entries:
                    pipe.incr(key)
                    pipe.expire(key, ttl, nx=True)
                results = await pipe.execute()
        except _STORE_ERRORS as e:
            logger.error("Redis pipeline failed", keys=[key for key, _ in entries], error=str(e))
            raise StoreUnavailableError(
                "Counter store unavailable", details={"operation": "increment"}
            ) from e
        return [int(value) for value in results[0::2]]

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self.redis.delete(*keys))
        except _STORE_ERRORS as e:
            logger.error("Redis DEL failed", keys=list(keys), error=str(e))
            raise StoreUnavailableError("Counter store unavailable", details={"operation": "delete"}) from e

    async def keys(self, pattern: str) -> list[str]:
        try:
            found = [key async for key in self.redis.scan_iter(match=pattern)]
        except _STORE_ERRORS as e:
            logger.error("Redis SCAN failed", pattern=pattern, error=str(e))
            raise StoreUnavailableError("Counter store unavailable", details={"operation": "scan"}) from e
        return [key.decode() if isinstance(key, bytes) else key for key in found]
