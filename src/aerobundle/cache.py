# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""In-memory bundle cache with in-flight build coalescing.

Entries are keyed by (project_root, entry_point) and hold final bundle text.

Key Features:
- No TTL, size limit or filesystem staleness check: an entry lives until it
  is overwritten by a forced rebuild or removed by clear()
- Per-key in-flight marker: concurrent builds of one key share a single
  concurrent.futures.Future, so the pipeline runs once
- Generation counter: a build that started before clear() does not
  repopulate the cache
- Statistics tracking for cache performance

Thread Safety:
- Single _lock protects: _entries, _in_flight, _generation, _stats
- Futures are resolved outside the lock
"""

import logging
from concurrent.futures import Future
from threading import Lock
from typing import Dict, List, Optional, Tuple

from aerobundle.models import CacheStatistics

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


class BundleCache:
    """Bundle text store keyed by (project_root, entry_point).

    Usage:
        cache = BundleCache()
        future, is_owner, generation = cache.begin_build(key)
        if is_owner:
            cache.complete_build(key, future, text, generation)
        else:
            text = future.result()
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, str] = {}
        self._in_flight: Dict[CacheKey, "Future[str]"] = {}
        self._generation = 0
        self._stats = CacheStatistics()
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def generation(self) -> int:
        """Incremented by every clear()."""
        with self._lock:
            return self._generation

    def get(self, key: CacheKey) -> Optional[str]:
        """Get cached bundle text, recording a hit or miss.

        Returns:
            Cached text, or None if the key is absent.
        """
        with self._lock:
            text = self._entries.get(key)
            if text is None:
                self._stats.misses += 1
                logger.debug(f"Bundle cache miss: {key}")
            else:
                self._stats.hits += 1
                logger.debug(f"Bundle cache hit: {key}")
            return text

    def contains(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> List[CacheKey]:
        with self._lock:
            return list(self._entries)

    def put(self, key: CacheKey, text: str) -> None:
        """Store bundle text, overwriting any previous entry."""
        with self._lock:
            self._store(key, text)

    def _store(self, key: CacheKey, text: str) -> None:
        self._entries[key] = text
        self._stats.stores += 1
        self._stats.current_entry_count = len(self._entries)
        if self._stats.current_entry_count > self._stats.peak_entry_count:
            self._stats.peak_entry_count = self._stats.current_entry_count

    def clear(self) -> None:
        """Remove every entry.

        In-flight builds are detached: they still resolve the callers already
        waiting on them but are not stored, and later requests start a new build.
        """
        with self._lock:
            self._entries.clear()
            self._in_flight.clear()
            self._generation += 1
            self._stats.clears += 1
            self._stats.current_entry_count = 0

        logger.debug("Bundle cache cleared")

    # =========================================================================
    # In-flight coalescing
    # =========================================================================

    def begin_build(self, key: CacheKey) -> Tuple["Future[str]", bool, int]:
        """Claim the build for a key or join the one already running.

        Returns:
            Tuple of (future, is_owner, generation). The owner must finish with
            complete_build() or fail_build(); other callers wait on the future.
        """
        with self._lock:
            future = self._in_flight.get(key)
            if future is not None:
                self._stats.coalesced_waits += 1
                logger.debug(f"Joining in-flight bundle build: {key}")
                return future, False, self._generation

            future = Future()
            self._in_flight[key] = future
            return future, True, self._generation

    def complete_build(
        self, key: CacheKey, future: "Future[str]", text: str, generation: int
    ) -> None:
        """Store a finished build and release its waiters.

        The text is stored only if no clear() happened since begin_build().
        """
        with self._lock:
            if self._generation == generation:
                self._store(key, text)
            else:
                logger.debug(f"Discarding bundle built before cache clear: {key}")
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

        future.set_result(text)

    def fail_build(self, key: CacheKey, future: "Future[str]", error: BaseException) -> None:
        """Release waiters of a failed build without touching the entries."""
        with self._lock:
            self._stats.failures += 1
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

        future.set_exception(error)

    def get_statistics(self) -> CacheStatistics:
        """Get a copy of the cache statistics."""
        with self._lock:
            return CacheStatistics.from_dict(self._stats.to_dict())

    def get_hit_rate(self) -> float:
        """Cache hit rate as a percentage (0.0-100.0), or 0.0 if no lookups."""
        with self._lock:
            total = self._stats.hits + self._stats.misses
            if total == 0:
                return 0.0
            return (self._stats.hits / total) * 100.0
