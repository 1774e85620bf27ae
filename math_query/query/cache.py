"""
Result caching layer.

Provides a simple in-memory TTL cache for aggregate results, addressed by
(key, group).  Keys come from ``make_cache_key``: the cache group plus a
SHA-256 of the fully normalized QuerySpec, so two processes asking the same
question derive the same key.

The cache is process-local (dict-based) with configurable TTL and max size.
Any object with ``get(key, group)`` / ``set(key, value, group)`` can stand in
for it, e.g. a Redis or Memcached client wrapper.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any

from math_query.core.config import get_settings
from math_query.core.logging import get_logger
from math_query.query.interfaces import MISS
from math_query.query.spec import QuerySpec

logger = get_logger(__name__)


def make_cache_key(spec: QuerySpec) -> str:
    """``{cache_group}_{sha256 of the normalized spec}``."""
    return f"{spec.cache_group}_{spec.digest()}"


# ── Cache entry ─────────────────────────────────────────


@dataclass
class CacheEntry:
    """A single cached result."""
    key: str
    group: str
    value: Any
    created_at: float
    ttl: float
    hit_count: int = 0

    @property
    def is_expired(self) -> bool:
        return (time.time() - self.created_at) > self.ttl


# ── Cache implementation ────────────────────────────────


class ResultCache:
    """Thread-safe in-memory TTL cache for aggregate results.

    Parameters
    ----------
    ttl : float
        Time-to-live in seconds for each entry.
    max_size : int
        Maximum number of entries. Oldest entries are evicted when full.
    """

    def __init__(self, ttl: float | None = None, max_size: int | None = None):
        settings = get_settings()
        self._store: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()
        self._ttl = settings.cache_ttl_seconds if ttl is None else ttl
        self._max_size = settings.cache_max_size if max_size is None else max_size
        self._hits = 0
        self._misses = 0

    # ── Public API ──────────────────────────────────────

    def get(self, key: str, group: str) -> Any:
        """Return the cached value, or ``MISS`` on miss / expiry."""
        slot = (group, key)
        with self._lock:
            entry = self._store.get(slot)
            if entry is None:
                self._misses += 1
                return MISS
            if entry.is_expired:
                del self._store[slot]
                self._misses += 1
                return MISS
            entry.hit_count += 1
            self._hits += 1
            logger.debug("Cache HIT group=%s key=%s hits=%d", group, key[-16:], entry.hit_count)
            return entry.value

    def set(self, key: str, value: Any, group: str) -> None:
        """Store a result in the cache."""
        slot = (group, key)
        with self._lock:
            # Evict oldest if at capacity
            if len(self._store) >= self._max_size and slot not in self._store:
                self._evict_oldest()
            self._store[slot] = CacheEntry(
                key=key, group=group, value=value, created_at=time.time(), ttl=self._ttl,
            )
        logger.debug("Cache SET group=%s key=%s size=%d", group, key[-16:], len(self._store))

    def invalidate(self, group: str | None = None) -> int:
        """Flush one group, or everything. Returns number of entries removed."""
        with self._lock:
            if group is None:
                count = len(self._store)
                self._store.clear()
                return count
            doomed = [slot for slot in self._store if slot[0] == group]
            for slot in doomed:
                del self._store[slot]
            return len(doomed)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._store),
                "max_size": self._max_size,
                "ttl_seconds": self._ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 3) if total else 0.0,
            }

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count removed."""
        with self._lock:
            expired = [k for k, v in self._store.items() if v.is_expired]
            for k in expired:
                del self._store[k]
            return len(expired)

    # ── Internals ───────────────────────────────────────

    def _evict_oldest(self) -> None:
        """Remove the entry with the earliest creation time."""
        if not self._store:
            return
        oldest = min(self._store, key=lambda k: self._store[k].created_at)
        del self._store[oldest]


# ── Module-level singleton ──────────────────────────────

_cache: ResultCache | None = None


def get_cache() -> ResultCache:
    """Return the shared default cache instance."""
    global _cache
    if _cache is None:
        _cache = ResultCache()
    return _cache
