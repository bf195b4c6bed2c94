# tests/test_cache_store.py
import asyncio

import pytest

from workflow_transfer.core.cache_store import CacheStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheStore(ttl_seconds=10, clock=clock)


def _counter(value="v"):
    calls = {"count": 0}

    async def compute():
        calls["count"] += 1
        return f"{value}{calls['count']}"

    return compute, calls


class TestCacheStore:

    @pytest.mark.asyncio
    async def test_hit_within_ttl(self, cache, clock):
        compute, calls = _counter()
        assert await cache.get("k", compute) == "v1"
        clock.now = 9.9
        assert await cache.get("k", compute) == "v1"
        assert calls["count"] == 1
        assert cache.stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_recomputes_after_ttl(self, cache, clock):
        compute, calls = _counter()
        await cache.get("k", compute)
        clock.now = 10.0
        assert await cache.get("k", compute) == "v2"
        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, cache):
        async def boom():
            raise RuntimeError("down")

        with pytest.raises(RuntimeError):
            await cache.get("k", boom)
        assert cache.peek("k") is None

        compute, _ = _counter()
        assert await cache.get("k", compute) == "v1"

    @pytest.mark.asyncio
    async def test_single_flight_per_key(self, cache):
        calls = {"count": 0}
        release = asyncio.Event()

        async def slow():
            calls["count"] += 1
            await release.wait()
            return "value"

        tasks = [asyncio.create_task(cache.get("k", slow)) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        assert await asyncio.gather(*tasks) == ["value"] * 5
        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_invalidate(self, cache):
        compute, calls = _counter()
        await cache.get("k", compute)
        assert cache.invalidate("k") is True
        assert cache.invalidate("k") is False
        assert await cache.get("k", compute) == "v2"

    @pytest.mark.asyncio
    async def test_invalidate_during_flight_discards_value(self, cache):
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return "stale"

        task = asyncio.create_task(cache.get("k", slow))
        await asyncio.sleep(0)
        cache.invalidate("k")
        release.set()
        assert await task == "stale"
        assert cache.peek("k") is None

    @pytest.mark.asyncio
    async def test_invalidate_prefix(self, cache):
        for key in ("list:a", "list:b", "get:1"):
            await cache.get(key, _counter()[0])
        assert cache.invalidate_prefix("list:") == 2
        assert cache.peek("get:1") == "v1"
        assert cache.stats()["size"] == 1

    @pytest.mark.asyncio
    async def test_clear(self, cache):
        await cache.get("k", _counter()[0])
        cache.clear()
        assert cache.stats()["size"] == 0

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            CacheStore(ttl_seconds=-1)
