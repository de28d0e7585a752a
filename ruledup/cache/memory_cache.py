"""Thread-safe in-memory cache with TTL and oldest-first eviction."""

import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Optional

from .base import CacheEntry
from ruledup.utils.logger import log_debug


class MemoryCache:
    """Size-bounded, time-bounded cache owned by a single component.

    Entries are evicted in insertion order once ``max_size`` is reached;
    reads do not change an entry's position. Expired entries are dropped
    lazily on read and eagerly by ``cleanup_expired``.
    """

    def __init__(self, max_size: int = 1000, ttl_seconds: float = 900, name: str = "memory"):
        self.name = name
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self.cache)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self.cache.get(key)
            return entry is not None and not entry.is_expired()

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache, or None on miss or expiry."""
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                self.misses += 1
                return None

            if entry.is_expired():
                del self.cache[key]
                self.misses += 1
                return None

            entry.touch()
            self.hits += 1
            return entry.data

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Insert or replace a value; a replaced key counts as newly inserted."""
        with self._lock:
            if key in self.cache:
                del self.cache[key]

            self.cache[key] = CacheEntry(
                key=key,
                data=value,
                timestamp=datetime.now(),
                ttl_seconds=self.ttl_seconds if ttl is None else ttl,
            )

            while len(self.cache) > self.max_size:
                evicted_key, _ = self.cache.popitem(last=False)
                self.evictions += 1
                log_debug("Cache evicted oldest entry", cache=self.name, key=evicted_key[:40])

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        with self._lock:
            if key in self.cache:
                del self.cache[key]
                return True
            return False

    def clear(self) -> None:
        """Clear all entries and reset counters."""
        with self._lock:
            self.cache.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0

    def cleanup_expired(self) -> int:
        """Remove expired entries and return count removed."""
        with self._lock:
            expired = [key for key, entry in self.cache.items() if entry.is_expired()]
            for key in expired:
                del self.cache[key]
            return len(expired)

    def get_hit_rate(self) -> float:
        """Calculate cache hit rate as a percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def utilization(self) -> float:
        """Fraction of capacity in use."""
        return len(self) / self.max_size if self.max_size else 0.0

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "name": self.name,
                "size": len(self.cache),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "hit_rate_percent": round(self.get_hit_rate(), 2),
                "entry_accesses": sum(entry.access_count for entry in self.cache.values()),
                "ttl_seconds": self.ttl_seconds,
                "eviction_policy": "oldest_first",
            }
