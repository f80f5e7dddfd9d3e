"""In-memory TTL request cache.

A bounded key -> value store placed in front of the GitHub API. Every entry
expires ``ttl`` seconds after it was written (per-store default, overridable
per call). When a new key would overflow ``max_size``, the entry with the
oldest insertion time is evicted first (FIFO; reads never change eviction
order or expiry).

``get_or_set`` does not deduplicate concurrent misses unless the store is
built with ``dedupe=True``: by default two callers racing on a cold key both
run the producer and the later write wins.

``clear()`` starts a new generation. A producer that was already running when
the store was cleared still returns its value to its caller, but the value is
not stored.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from prlens.domain.events.api_events import CacheHit, CacheMiss, EventSink, log_event
from prlens.domain.interfaces.cache import CacheService, Producer
from prlens.domain.models.common import CacheKey, CacheStats

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_SIZE = 100


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    value: Any
    inserted_at: float
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class RequestCache(CacheService):
    """Bounded, time-expiring cache with FIFO eviction."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
        dedupe: bool = False,
        event_sink: Optional[EventSink] = None,
    ):
        """Initializes the cache.

        Args:
            ttl: Default time-to-live in seconds.
            max_size: Maximum number of entries held at once.
            clock: Monotonic time source in seconds.
            dedupe: Collapse concurrent ``get_or_set`` misses on the same key
                into one producer call.
            event_sink: Receives CacheHit/CacheMiss events.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.ttl = ttl
        self.max_size = max_size
        self.dedupe = dedupe
        self._clock = clock
        self._emit = event_sink or log_event
        # Insertion order is kept equal to age order (replaced keys are re-inserted).
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._in_flight: Dict[CacheKey, "asyncio.Future[Any]"] = {}
        self._generation = 0
        logger.info(f"RequestCache initialized (ttl={ttl}s, max_size={max_size}, dedupe={dedupe})")

    def __len__(self) -> int:
        return len(self._entries)

    # --- CacheService Interface Implementation ---

    def get(self, key: CacheKey) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None or not entry.is_live(self._clock()):
            # Expired entries stay in place until cleanup() or eviction.
            logger.debug(f"Cache miss for key: {key}")
            self._emit(CacheMiss(key=key))
            return None
        logger.debug(f"Cache hit for key: {key}")
        self._emit(CacheHit(key=key))
        return entry.value

    def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        effective_ttl = self.ttl if ttl is None else ttl

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._evict_oldest()

        self._entries[key] = CacheEntry(value=value, inserted_at=now, expires_at=now + effective_ttl)
        logger.debug(f"Stored item in cache: key={key}, ttl={effective_ttl}s")

    def delete(self, key: CacheKey) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"Deleted item from cache: key={key}")
        return removed

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        # In-flight producers belong to the previous generation.
        self._in_flight.clear()
        self._generation += 1
        logger.info(f"Cleared request cache ({count} entries).")

    async def get_or_set(self, key: CacheKey, producer: Producer, ttl: Optional[float] = None) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached

        generation = self._generation
        if not self.dedupe:
            value = await _resolve(producer)
            self._store_if_current(generation, key, value, ttl)
            return value

        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight request for key: {key}")
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await _resolve(producer)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unjoined future does not warn on collection.
            future.exception()
            raise
        else:
            self._store_if_current(generation, key, value, ttl)
            future.set_result(value)
            return value
        finally:
            # A clear() may have let a newer producer take this key.
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    def cleanup(self) -> int:
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if not entry.is_live(now)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug(f"Cache cleanup removed {len(expired)} expired entries.")
        return len(expired)

    def get_stats(self) -> CacheStats:
        now = self._clock()
        valid = sum(1 for entry in self._entries.values() if entry.is_live(now))
        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=valid,
            expired_entries=len(self._entries) - valid,
            max_size=self.max_size,
            default_ttl=self.ttl,
        )

    # --- Internals ---

    def _store_if_current(self, generation: int, key: CacheKey, value: Any, ttl: Optional[float]) -> None:
        if generation != self._generation:
            logger.debug(f"Discarding value for key {key}: cache was cleared while it was produced.")
            return
        self.set(key, value, ttl)

    def _evict_oldest(self) -> None:
        oldest_key = min(self._entries, key=lambda k: self._entries[k].inserted_at)
        del self._entries[oldest_key]
        logger.debug(f"Evicted oldest cache entry: key={oldest_key}")


async def _resolve(producer: Producer) -> Any:
    result = producer()
    if inspect.isawaitable(result):
        return await result
    return result
