# workflow_transfer/core/cache_store.py
"""
TTL cache for remote reads with single-flight computation per key.

Concurrent ``get`` calls for the same missing key share one computation:
the first caller computes under a per-key ``asyncio.Lock`` and later
callers find the fresh entry once the lock is released. Failed
computations store nothing. Invalidating a key while its computation is in
flight bumps the key's generation so the stale result is not stored.

Usage:
    cache = CacheStore(ttl_seconds=300)
    items = await cache.get("list:{}", lambda: service.fetch_all())
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger("workflow_transfer.cache_store")


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl: float
    hits: int = 0

    def is_fresh(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


class CacheStore:

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._generations: Dict[str, int] = {}
        self._hits = 0
        self._misses = 0

    def _fresh_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_fresh(self._clock()):
            return entry
        del self._entries[key]
        return None

    def peek(self, key: str) -> Optional[Any]:
        """Return the cached value without computing or counting a hit."""
        entry = self._fresh_entry(key)
        return entry.value if entry else None

    async def get(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for ``key`` or compute and store it.

        Args:
            key: Cache key
            compute: Zero-argument coroutine factory producing the value

        Raises:
            Whatever ``compute`` raises; nothing is cached in that case.
        """
        entry = self._fresh_entry(key)
        if entry is not None:
            entry.hits += 1
            self._hits += 1
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            entry = self._fresh_entry(key)
            if entry is not None:
                entry.hits += 1
                self._hits += 1
                return entry.value

            self._misses += 1
            generation = self._generations.get(key, 0)
            value = await compute()
            if self._generations.get(key, 0) == generation:
                self._entries[key] = CacheEntry(
                    key=key, value=value, stored_at=self._clock(), ttl=self.ttl_seconds
                )
            else:
                logger.debug(f"Discarding stale value for invalidated key {key}")
            return value

    def invalidate(self, key: str) -> bool:
        self._generations[key] = self._generations.get(key, 0) + 1
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Invalidate every key (stored or in flight) starting with ``prefix``."""
        keys = {k for k in self._entries if k.startswith(prefix)}
        keys.update(k for k in self._locks if k.startswith(prefix))
        removed = 0
        for key in keys:
            if self.invalidate(key):
                removed += 1
        return removed

    def clear(self) -> None:
        for key in list(self._entries) + list(self._locks):
            self._generations[key] = self._generations.get(key, 0) + 1
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total else 0.0,
            "ttl_seconds": self.ttl_seconds,
        }
