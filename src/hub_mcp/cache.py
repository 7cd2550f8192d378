# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Bounded lookup memo with LRU eviction.

Each SchemaSnapshot owns one LookupCache. Fuzzy suggestions and filtered type
listings are pure functions of the snapshot, so their results are memoized
here and discarded together with the snapshot on refresh. There is no
field-level invalidation.

Thread Safety:
- Single _cache_lock protects: _cache, _stats
- compute callbacks run outside the lock; a racing duplicate computation
  stores an equal value
"""

import logging
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Hashable, TypeVar

from hub_mcp.models import CacheStatistics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LookupCache:
    """LRU memo for snapshot-derived lookups.

    Usage:
        cache = LookupCache(max_entries=100)
        similar = cache.get_or_compute(("similar_types", name), lambda: compute(name))
        stats = cache.get_statistics()
    """

    def __init__(self, max_entries: int = 100) -> None:
        """Initialize lookup cache.

        Args:
            max_entries: Maximum number of memoized results (default: 100).
        """
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")

        self._max_entries = max_entries
        self._cache: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._stats = CacheStatistics(
            hits=0,
            misses=0,
            evictions_lru=0,
            current_entry_count=0,
            peak_entry_count=0,
        )
        self._cache_lock = Lock()

        logger.debug(f"LookupCache initialized with max_entries={max_entries}")

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def put(self, key: Hashable, value: Any) -> None:
        """Store a value, evicting the least recently used entry if full."""
        with self._cache_lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                self._cache[key] = value
                return

            if len(self._cache) >= self._max_entries:
                self._evict_lru()

            self._cache[key] = value
            self._stats.current_entry_count = len(self._cache)
            if self._stats.current_entry_count > self._stats.peak_entry_count:
                self._stats.peak_entry_count = self._stats.current_entry_count

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Return the memoized value for key, computing and storing it on a miss."""
        with self._cache_lock:
            if key in self._cache:
                self._stats.hits += 1
                self._cache.move_to_end(key)
                value: T = self._cache[key]
                return value
            self._stats.misses += 1

        value = compute()
        self.put(key, value)
        return value

    def _evict_lru(self) -> None:
        """Evict the least recently used entry. Caller holds _cache_lock."""
        # Items at the beginning are least recently used
        key, _ = self._cache.popitem(last=False)
        self._stats.evictions_lru += 1
        self._stats.current_entry_count = len(self._cache)
        logger.debug(f"Evicted LRU lookup entry: {key!r}")

    def get_statistics(self) -> CacheStatistics:
        """Get cache performance statistics.

        Returns:
            CacheStatistics with current metrics.
        """
        with self._cache_lock:
            # Return a copy to avoid external mutation
            return CacheStatistics(
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions_lru=self._stats.evictions_lru,
                current_entry_count=self._stats.current_entry_count,
                peak_entry_count=self._stats.peak_entry_count,
            )

    def get_hit_rate(self) -> float:
        """Calculate cache hit rate.

        Returns:
            Hit rate as percentage (0.0-100.0), or 0.0 if no reads.
        """
        with self._cache_lock:
            total_reads = self._stats.hits + self._stats.misses
            if total_reads == 0:
                return 0.0
            return (self._stats.hits / total_reads) * 100.0
