"""Concrete implementation of the Caching Service.

A bounded in-memory TTL cache. Entries expire lazily on lookup; when the
cache is full the oldest write is evicted first. Access is not locked: all
callers run on one asyncio event loop.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from briefai.domain.interfaces.cache import CacheService
from briefai.domain.models.common import CacheKey, CachePrefix

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60  # 1 hour
DEFAULT_MAX_ITEMS = 1000


@dataclass
class CacheEntry:
    """Internal representation of a cache entry."""
    key: CacheKey
    value: Any
    written_at_ms: int
    ttl_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms - self.written_at_ms > self.ttl_ms


class CachingServiceImpl(CacheService):
    """Bounded TTL cache with oldest-write-first eviction."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_items: int = DEFAULT_MAX_ITEMS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the caching service.

        Args:
            default_ttl: TTL in seconds used when ``set`` gets none.
            max_items: Capacity; must be at least 1.
            clock: Returns the current time in seconds (injectable for tests).
        """
        if max_items < 1:
            raise ValueError("max_items must be at least 1")
        # dict preserves insertion order, so the first key is the oldest write
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self.default_ttl = default_ttl
        self.max_items = max_items
        self._clock = clock
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        logger.info(f"CachingService initialized (ttl={default_ttl}s, max_items={max_items})")

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _lookup(self, key: CacheKey) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._now_ms()):
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key}")
            return None
        return entry

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey) -> Optional[Any]:
        entry = self._lookup(key)
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        logger.debug(f"Cache hit for key: {key}")
        return entry.value

    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        effective_ttl = self.default_ttl if ttl is None else ttl
        # Re-inserting moves an overwritten key to the newest position
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_items:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            self.evictions += 1
            logger.debug(f"Cache full, evicted oldest entry: {oldest_key}")
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            written_at_ms=self._now_ms(),
            ttl_ms=int(effective_ttl * 1000),
        )

    async def invalidate(self, pattern: str) -> int:
        regex = re.compile(pattern)
        doomed = [k for k in self._entries if regex.search(k)]
        for k in doomed:
            del self._entries[k]
        logger.info(f"Invalidated {len(doomed)} cache entries matching '{pattern}'")
        return len(doomed)

    async def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cache cleared ({count} entries removed)")

    def stats(self) -> Dict[str, Any]:
        now = self._now_ms()
        return {
            "size": len(self._entries),
            "max_items": self.max_items,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": self.hit_rate(),
            "entries": [
                {"key": e.key, "age_ms": now - e.written_at_ms, "ttl_ms": e.ttl_ms}
                for e in self._entries.values()
            ],
        }

    # --- Helpers ---

    def has_valid(self, key: CacheKey) -> bool:
        """True if a non-expired entry exists. Does not touch hit/miss counters."""
        return self._lookup(key) is not None

    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def generate_key(prefix: CachePrefix, params: Mapping[str, Any]) -> CacheKey:
        """Builds ``prefix:k1:v1|k2:v2`` with parameters sorted by name."""
        parts = "|".join(f"{k}:{params[k]}" for k in sorted(params))
        return CacheKey(f"{prefix}:{parts}")
