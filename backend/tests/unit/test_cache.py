# backend/tests/unit/test_cache.py

import pytest
from unittest.mock import AsyncMock, MagicMock

from djula.services.cache_service import CacheService, TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:

    def test_entry_is_served_until_ttl_elapses(self):
        clock = FakeClock()
        cache = TTLCache("test", ttl_seconds=300, clock=clock)
        cache.set("a", {"value": 1})

        clock.now += 299
        assert cache.get("a") == {"value": 1}

        clock.now += 1
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_oldest_entry_is_evicted_when_full(self):
        cache = TTLCache("test", ttl_seconds=300, max_size=2, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_rewriting_a_key_refreshes_its_position(self):
        cache = TTLCache("test", ttl_seconds=300, max_size=2, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)

        assert cache.get("a") == 10
        assert cache.get("b") is None

    def test_sweep_removes_only_expired_entries(self):
        clock = FakeClock()
        cache = TTLCache("test", ttl_seconds=60, clock=clock)
        cache.set("old", 1)
        clock.now += 61
        cache.set("new", 2)

        assert cache.sweep() == 1
        assert cache.get("new") == 2

    def test_invalidate_is_idempotent(self):
        cache = TTLCache("test", ttl_seconds=60, clock=FakeClock())
        cache.set("a", 1)
        cache.invalidate("a")
        cache.invalidate("a")
        assert cache.get("a") is None


class TestDeliveryClaims:

    @pytest.mark.asyncio
    async def test_local_table_rejects_second_claim(self):
        service = CacheService("redis://localhost:6379", delivery_ttl=60)
        service.redis = None

        assert await service.claim_delivery("wamid.1") is True
        assert await service.claim_delivery("wamid.1") is False
        assert await service.claim_delivery("wamid.2") is True

    @pytest.mark.asyncio
    async def test_redis_set_nx_decides_the_claim(self):
        service = CacheService("redis://localhost:6379", delivery_ttl=60)
        service.redis = MagicMock()
        service.redis.set = AsyncMock(side_effect=[True, None])

        assert await service.claim_delivery("wamid.1") is True
        assert await service.claim_delivery("wamid.1") is False
        service.redis.set.assert_awaited_with("delivery:wamid.1", "1", ex=60, nx=True)

    @pytest.mark.asyncio
    async def test_redis_failure_falls_back_to_local_table(self):
        service = CacheService("redis://localhost:6379", delivery_ttl=60)
        service.redis = MagicMock()
        service.redis.set = AsyncMock(side_effect=ConnectionError("redis down"))

        assert await service.claim_delivery("wamid.9") is True
        assert await service.claim_delivery("wamid.9") is False
