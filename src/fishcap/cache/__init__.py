"""Best-effort caching of validated generation output."""

from fishcap.cache.layer import (
    CACHE_PREFIX,
    CacheHit,
    CacheStats,
    CachingLayer,
    make_cache_key,
)
from fishcap.cache.store import InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "CACHE_PREFIX",
    "CacheHit",
    "CacheStats",
    "CachingLayer",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "make_cache_key",
]
