"""Last-known-good cache used by the degradation cascade"""

import asyncio
import time
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from ..config import settings
from ..models import FallbackCacheEntry


class CacheBackend(Protocol):
    """Key/value storage for fallback entries"""

    async def get(self, key: str) -> Optional[FallbackCacheEntry]: ...

    async def set(self, entry: FallbackCacheEntry) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def items(self) -> list[FallbackCacheEntry]: ...

    async def clear(self) -> None: ...


class InMemoryCacheBackend:
    """Process-local backend with bounded size"""

    def __init__(self, max_size: int = 1000):
        """Initialize backend

        Args:
            max_size: Maximum number of entries before eviction
        """
        self.max_size = max_size
        self._entries: dict[str, FallbackCacheEntry] = {}
        self._access_count: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[FallbackCacheEntry]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._access_count[key] = self._access_count.get(key, 0) + 1
            return entry

    async def set(self, entry: FallbackCacheEntry) -> None:
        async with self._lock:
            # Evict least accessed if cache is full
            if entry.key not in self._entries and len(self._entries) >= self.max_size:
                lru_key = min(
                    self._entries.keys(),
                    key=lambda k: self._access_count.get(k, 0)
                )
                del self._entries[lru_key]
                self._access_count.pop(lru_key, None)
                logger.debug(f"Evicted fallback cache entry {lru_key}")

            self._entries[entry.key] = entry

    async def delete(self, key: str) -> bool:
        async with self._lock:
            self._access_count.pop(key, None)
            return self._entries.pop(key, None) is not None

    async def items(self) -> list[FallbackCacheEntry]:
        async with self._lock:
            return list(self._entries.values())

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._access_count.clear()

    @property
    def total_accesses(self) -> int:
        return sum(self._access_count.values())


class FallbackCache:
    """Time-bounded cache of last-known-good payloads per logical key

    Entries older than their TTL read as absent and are removed lazily.
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize cache

        Args:
            backend: Storage backend (in-memory if None)
            default_ttl: Time to live in seconds for entries without one
            clock: Wall-clock time source
        """
        self.backend = backend or InMemoryCacheBackend(
            max_size=settings.fallback_cache_max_size
        )
        self.default_ttl = default_ttl or settings.fallback_cache_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Optional[Any]:
        """Get cached payload if present and not expired

        A cached payload of None reads the same as a miss; use get_entry()
        to tell them apart.
        """
        entry = await self.get_entry(key)
        return entry.data if entry is not None else None

    async def get_entry(self, key: str) -> Optional[FallbackCacheEntry]:
        """Get the live entry for ``key``, dropping it if expired"""
        entry = await self.backend.get(key)
        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(self._clock()):
            await self.backend.delete(key)
            self._misses += 1
            logger.debug(f"Fallback cache entry {key} expired")
            return None

        self._hits += 1
        return entry

    async def put(self, key: str, data: Any, ttl: float | None = None) -> FallbackCacheEntry:
        """Store payload as the last-known-good value for ``key``"""
        entry = FallbackCacheEntry(
            key=key, data=data, timestamp=self._clock(), ttl=ttl or self.default_ttl
        )
        await self.backend.set(entry)
        return entry

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)

    async def purge_expired(self) -> int:
        """Physically remove expired entries, returning how many were removed"""
        now = self._clock()
        removed = 0
        for entry in await self.backend.items():
            if entry.is_expired(now) and await self.backend.delete(entry.key):
                removed += 1
        if removed:
            logger.info(f"Purged {removed} expired fallback cache entries")
        return removed

    async def clear(self) -> None:
        await self.backend.clear()

    async def stats(self) -> dict[str, Any]:
        """Get cache statistics"""
        now = self._clock()
        entries = await self.backend.items()
        live = sum(1 for entry in entries if not entry.is_expired(now))
        lookups = self._hits + self._misses
        return {
            "size": len(entries),
            "live": live,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }
