"""
UnitEcon Core Caching - Content-Keyed LRU Cache
=================================================
Memoizes pure derivations keyed by a content hash.

Doctrine: a cache entry is valid for as long as its key exists. Keys
are content hashes, so an entry can never go stale - no TTL, no clock.
Capacity is bounded; the least recently used entry goes first.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

V = TypeVar("V")


# ══════════════════════════════════════════════════════════════
# CACHE STATISTICS
# ══════════════════════════════════════════════════════════════

@dataclass
class CacheStats:
    """Cache performance statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    invalidations: int = 0
    total_entries: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "total_entries": self.total_entries,
            "hit_rate": round(self.hit_rate, 4),
        }


# ══════════════════════════════════════════════════════════════
# CONTENT CACHE
# ══════════════════════════════════════════════════════════════

class ContentCache(Generic[V]):
    """
    In-memory LRU cache keyed by content hash.

    get() returns the exact object that was stored, so callers can
    rely on identity to detect a hit.
    """

    def __init__(self, max_size: int = 128) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1.")
        self._max_size = max_size
        self._entries: "OrderedDict[str, V]" = OrderedDict()
        self._stats = CacheStats()

    def get(self, key: str) -> Optional[V]:
        """Return the cached value, or None on miss."""
        if key not in self._entries:
            self._stats.misses += 1
            return None

        self._entries.move_to_end(key)
        self._stats.hits += 1
        return self._entries[key]

    def put(self, key: str, value: V) -> None:
        if key not in self._entries and len(self._entries) >= self._max_size:
            self._evict_lru()

        self._entries[key] = value
        self._entries.move_to_end(key)
        self._stats.total_entries = len(self._entries)

    def invalidate(self, key: str) -> bool:
        if key in self._entries:
            del self._entries[key]
            self._stats.invalidations += 1
            self._stats.total_entries = len(self._entries)
            return True
        return False

    def clear(self) -> None:
        self._stats.invalidations += len(self._entries)
        self._entries.clear()
        self._stats.total_entries = 0

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def stats(self) -> CacheStats:
        return self._stats

    @property
    def size(self) -> int:
        return len(self._entries)

    def _evict_lru(self) -> None:
        oldest_key = next(iter(self._entries))
        del self._entries[oldest_key]
        self._stats.evictions += 1
        self._stats.total_entries = len(self._entries)
