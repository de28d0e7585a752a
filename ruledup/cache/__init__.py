"""In-memory caching for feature bundles and detection results.

Each matcher and the detector own their own ``MemoryCache``; nothing is
shared across instances.
"""

from .base import CacheEntry, make_cache_key
from .memory_cache import MemoryCache

__all__ = [
    "CacheEntry",
    "MemoryCache",
    "make_cache_key",
]
