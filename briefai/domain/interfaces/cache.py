"""Interface for caching mechanisms.

Defines the contract for storing, retrieving and invalidating cached data
with per-entry TTLs.
"""

import abc
from typing import Any, Dict, Optional

from ..models.common import CacheKey


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves an item from the cache.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if present and not expired, otherwise None.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores an item, overwriting any existing entry for the key.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds (uses the cache default if None).
        """
        pass

    @abc.abstractmethod
    async def invalidate(self, pattern: str) -> int:
        """Deletes every entry whose key matches the regular expression.

        Returns:
            The number of entries removed.
        """
        pass

    @abc.abstractmethod
    async def clear(self) -> None:
        """Removes all entries."""
        pass

    @abc.abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Returns size, capacity, hit/miss counters and per-entry ages."""
        pass
