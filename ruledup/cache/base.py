"""Cache entry and key helpers shared by the in-memory caches."""

from datetime import datetime, timedelta
from dataclasses import dataclass
from typing import Any
import hashlib


@dataclass
class CacheEntry:
    """A cache entry with metadata."""

    key: str
    data: Any
    timestamp: datetime
    ttl_seconds: float = 900  # 15 minutes default TTL
    access_count: int = 0

    def is_expired(self) -> bool:
        """Check if the cache entry has expired."""
        if self.ttl_seconds <= 0:  # Never expires if TTL is 0 or negative
            return False
        return datetime.now() - self.timestamp > timedelta(seconds=self.ttl_seconds)

    def touch(self) -> None:
        """Record a hit without refreshing the insertion time."""
        self.access_count += 1


def make_cache_key(prefix: str, *parts: Any) -> str:
    """Create a consistent cache key from parts.

    Keys longer than 200 characters are hashed so rule text never ends up
    verbatim in a key.
    """
    key_string = "|".join(str(part) for part in (prefix,) + parts)

    if len(key_string) > 200:
        key_hash = hashlib.md5(key_string.encode(), usedforsecurity=False).hexdigest()
        return f"{prefix}:{key_hash}"

    return key_string.replace(" ", "_")
