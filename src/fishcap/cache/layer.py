"""Content-addressed memoization of validated outputs with TTL expiry."""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from fishcap.errors import StoreError

from .store import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "fish-cache:"
DEFAULT_TTL_S = 24 * 60 * 60
DEFAULT_PROMPT_VERSION = "v1"
_SNIPPET_CHARS = 200


def _sha256_string(s: str) -> str:
    """Compute lowercase hex SHA-256 of a UTF-8 string."""
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def make_cache_key(
    session_id: str,
    concept_id: str,
    input_snippet: str,
    prompt_version: str = DEFAULT_PROMPT_VERSION,
) -> str:
    """
    Derive a stable key from the session, concept, the first 200 characters
    of the input and the prompt version. Bumping the version orphans old entries.
    """
    blob = "\x1f".join((session_id, concept_id, input_snippet[:_SNIPPET_CHARS], prompt_version))
    return f"{CACHE_PREFIX}{_sha256_string(blob)[:32]}"


class CacheEntry(BaseModel):
    value: Any
    meta: dict[str, Any] = Field(default_factory=dict)
    stored_at: float
    ttl_s: float


class CacheHit(BaseModel):
    value: Any
    meta: dict[str, Any]


class CacheStats(BaseModel):
    entries: int
    total_bytes: int


class CachingLayer:
    """
    Best-effort cache in front of validated generation output.

    Store failures are logged and swallowed: a broken cache degrades to a
    miss, never to an error.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store if store is not None else InMemoryKeyValueStore()
        self.ttl_s = ttl_s
        self._clock = clock

    def _evict(self, key: str) -> bool:
        try:
            self._store.delete(key)
        except StoreError as err:
            logger.warning("Cache delete failed for %s: %s", key, err)
            return False
        return True

    def invalidate(self, key: str) -> bool:
        """Drop the entry for ``key``. Returns False when the store refused the delete."""
        return self._evict(key)

    def get(self, key: str) -> CacheHit | None:
        """Return the entry for ``key`` unless it is absent, corrupt or older than its TTL."""
        try:
            raw = self._store.get(key)
        except StoreError as err:
            logger.warning("Cache read failed for %s: %s", key, err)
            return None

        if raw is None:
            logger.debug("Cache miss: %s", key)
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding corrupt cache entry %s", key)
            self._evict(key)
            return None

        age_s = self._clock() - entry.stored_at
        if age_s > entry.ttl_s:
            logger.debug("Cache entry %s expired (age %.0fs)", key, age_s)
            self._evict(key)
            return None

        logger.debug("Cache hit: %s", key)
        return CacheHit(value=entry.value, meta={**entry.meta, "cacheHit": True})

    def put(self, key: str, value: Any, meta: dict[str, Any] | None = None) -> None:
        """Store ``value`` under ``key``, overwriting any previous entry."""
        entry = CacheEntry(
            value=value,
            meta=dict(meta or {}),
            stored_at=self._clock(),
            ttl_s=self.ttl_s,
        )
        try:
            self._store.set(key, entry.model_dump_json())
        except StoreError as err:
            logger.warning("Cache write failed for %s: %s", key, err)

    def clear(self) -> int:
        """Remove every entry carrying the cache prefix. Returns the count removed."""
        removed = 0
        for key in list(self._store.keys()):
            if key.startswith(CACHE_PREFIX) and self._evict(key):
                removed += 1
        return removed

    def stats(self) -> CacheStats:
        entries = 0
        total_bytes = 0
        for key in self._store.keys():
            if not key.startswith(CACHE_PREFIX):
                continue
            try:
                value = self._store.get(key)
            except StoreError as err:
                logger.warning("Cache read failed for %s: %s", key, err)
                continue
            if value is not None:
                entries += 1
                total_bytes += len(value.encode("utf-8"))
        return CacheStats(entries=entries, total_bytes=total_bytes)
