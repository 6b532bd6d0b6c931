# /djula/services/cache_service.py

import json
import time
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar
import redis.asyncio as redis

from djula.config.settings import settings
from djula.utils.circuit_breaker import CircuitBreaker
from djula.utils.metrics import cache_operations

# This service manages caching: the in-process TTLCache used for conversation
# contexts and session states, and the Redis-backed CacheService used for
# delivery de-duplication, with built-in error handling and metrics.

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    stored_at: float


class TTLCache(Generic[T]):
    """
    Bounded in-process cache whose entries are only trusted for `ttl_seconds`
    after insertion. When full, the oldest entry is evicted first.
    """

    def __init__(self, name: str, ttl_seconds: float, max_size: int = 10000, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.stored_at < self.ttl_seconds

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            cache_operations.labels(operation=f"{self.name}_get", status="miss").inc()
            return None
        if not self._is_fresh(entry):
            del self._entries[key]
            cache_operations.labels(operation=f"{self.name}_get", status="stale").inc()
            return None
        cache_operations.labels(operation=f"{self.name}_get", status="hit").inc()
        return entry.value

    def set(self, key: str, value: T):
        if key in self._entries:
            del self._entries[key]
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
            cache_operations.labels(operation=f"{self.name}_evict", status="success").inc()
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: str):
        self._entries.pop(key, None)

    def sweep(self) -> int:
        """Removes every expired entry and returns how many were dropped."""
        expired = [key for key, entry in self._entries.items() if not self._is_fresh(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache '{self.name}' swept {len(expired)} expired entries")
        return len(expired)


class CacheService:
    def __init__(self, redis_url: str, delivery_ttl: int):
        self.delivery_ttl = delivery_ttl
        self.circuit_breaker = CircuitBreaker("redis")
        self._local_deliveries: TTLCache[bool] = TTLCache("delivery", ttl_seconds=delivery_ttl, max_size=50000)
        try:
            self.redis_pool = redis.ConnectionPool.from_url(redis_url, max_connections=20)
            self.redis = redis.Redis(connection_pool=self.redis_pool)
        except Exception as e:
            logger.critical(f"Failed to configure Redis at {redis_url}: {e}")
            self.redis = None

    async def get(self, key: str) -> Optional[str]:
        if not self.redis: return None
        try:
            result = await self.circuit_breaker.call(self.redis.get, key)
            cache_operations.labels(operation="get", status="hit" if result else "miss").inc()
            return result.decode('utf-8') if result else None
        except Exception as e:
            cache_operations.labels(operation="get", status="error").inc()
            logger.warning(f"Cache get failed for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 300):
        if not self.redis: return
        try:
            await self.circuit_breaker.call(self.redis.setex, key, ttl, json.dumps(value, default=str))
            cache_operations.labels(operation="set", status="success").inc()
        except Exception as e:
            cache_operations.labels(operation="set", status="error").inc()
            logger.warning(f"Cache set failed for key {key}: {e}")

    async def claim_delivery(self, message_id: str) -> bool:
        """
        Claims an inbound WhatsApp message id. Returns True the first time the
        id is seen and False for a re-delivery. Falls back to the in-process
        table when Redis is unavailable.
        """
        if self.redis:
            try:
                claimed = await self.circuit_breaker.call(
                    self.redis.set, f"delivery:{message_id}", "1", ex=self.delivery_ttl, nx=True
                )
                cache_operations.labels(operation="claim_delivery", status="success").inc()
                return bool(claimed)
            except Exception as e:
                cache_operations.labels(operation="claim_delivery", status="error").inc()
                logger.warning(f"Delivery claim via Redis failed for {message_id}, using local table: {e}")

        if self._local_deliveries.get(message_id):
            return False
        self._local_deliveries.set(message_id, True)
        return True

    def sweep_local(self) -> int:
        return self._local_deliveries.sweep()

    async def ping(self) -> bool:
        if not self.redis: return False
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self):
        if self.redis:
            await self.redis.aclose()

# Globally accessible instance
cache_service = CacheService(settings.redis_url, settings.delivery_dedup_ttl_seconds)
