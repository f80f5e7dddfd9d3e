"""Interface for caching mechanisms.

Defines the contract for storing, retrieving and expiring cached API
responses. Reads and writes are synchronous; only ``get_or_set`` awaits,
because its producer usually performs network I/O.
"""

import abc
from typing import Any, Awaitable, Callable, Optional, Union

# Import relevant domain models
from ..models.common import CacheKey, CacheStats

Producer = Callable[[], Union[Any, Awaitable[Any]]]


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves an item from the cache.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if found and not expired, otherwise None.
        """
        pass

    @abc.abstractmethod
    def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores an item, replacing any previous entry for the key.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds (uses the store default if None).
        """
        pass

    @abc.abstractmethod
    def delete(self, key: CacheKey) -> bool:
        """Deletes an item. Returns True if the key was present."""
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Clears all items."""
        pass

    @abc.abstractmethod
    async def get_or_set(self, key: CacheKey, producer: Producer, ttl: Optional[float] = None) -> Any:
        """Returns the live cached value, or produces, stores and returns it.

        Args:
            key: The cache key.
            producer: Zero-argument callable returning a value or an awaitable.
            ttl: Optional time-to-live override for a freshly produced value.
        """
        pass

    @abc.abstractmethod
    def cleanup(self) -> int:
        """Removes every expired entry and returns how many were removed."""
        pass

    @abc.abstractmethod
    def get_stats(self) -> CacheStats:
        """Returns entry counts partitioned by the expiry test."""
        pass

    def has(self, key: CacheKey) -> bool:
        return self.get(key) is not None
