"""AdLens — Tiered In-Process Cache.

Two TTL classes share one store: short entries (recent windows, composed
analytics) and long entries (historical pages, full datasets). Entries only
expire by age; ``sweep`` drops anything older than the long TTL.

The cache lives in process memory. It is lost on restart and is not shared
between worker processes.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from adlens.config import settings
from adlens.core.logging import get_logger

logger = get_logger("core.cache")

KEY_SEPARATOR = ":"

# (cache epoch, per-table invalidation count)
Generation = Tuple[int, int]


class CacheMetadata(BaseModel):
    """What produced a cached value."""

    query_time_ms: float = 0.0
    record_count: int = 0
    type: str = ""  # "recent" | "historical" | "full" | "count" | "analytics"


class CacheEntry(BaseModel):
    """A cached value and the time it was written (epoch seconds)."""

    data: Any = None
    timestamp: float
    metadata: Optional[CacheMetadata] = None


def make_key(kind: str, table_name: str, *parts: Any) -> str:
    """Build a cache key like ``recent:cb_ads_data:8``."""
    return KEY_SEPARATOR.join([kind, table_name, *(str(p) for p in parts)])


def _table_of(key: str) -> str:
    parts = key.split(KEY_SEPARATOR)
    return parts[1] if len(parts) > 1 else ""


class TieredCache:
    """Key → CacheEntry store with a short and a long TTL.

    Validity checks are read-only; hit/miss accounting is left to callers.
    """

    def __init__(
        self,
        short_ttl: float | None = None,
        long_ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.short_ttl = float(
            short_ttl if short_ttl is not None else settings.recent_cache_ttl_seconds
        )
        self.long_ttl = float(
            long_ttl if long_ttl is not None else settings.full_cache_ttl_seconds
        )
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._store)

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` regardless of age."""
        with self._lock:
            return self._store.get(key)

    def _ttl(self, long_ttl: bool) -> float:
        return self.long_ttl if long_ttl else self.short_ttl

    def _fresh(self, entry: Optional[CacheEntry], long_ttl: bool) -> bool:
        return entry is not None and self._clock() - entry.timestamp < self._ttl(
            long_ttl
        )

    def is_valid(self, key: str, long_ttl: bool = False) -> bool:
        """True iff ``key`` exists and is younger than the selected TTL."""
        return self._fresh(self.get(key), long_ttl)

    def lookup(self, key: str, long_ttl: bool = False) -> Optional[CacheEntry]:
        """Return the entry only while it is valid."""
        entry = self.get(key)
        return entry if self._fresh(entry, long_ttl) else None

    # ── Generations ──

    def _generation_of(self, table_name: str) -> Generation:
        return (self._epoch, self._generations.get(table_name, 0))

    def generation(self, table_name: str) -> Generation:
        """Token that changes whenever ``table_name`` is invalidated or the cache cleared.

        Capture it before reading from the store and pass it to ``put``; a
        value read before an invalidation is then never written back.
        """
        with self._lock:
            return self._generation_of(table_name)

    def put(
        self,
        key: str,
        data: Any,
        metadata: Optional[CacheMetadata] = None,
        generation: Optional[Generation] = None,
    ) -> Optional[CacheEntry]:
        """Store ``data`` under ``key``, overwriting any previous entry.

        With ``generation``, the write is dropped (and None returned) if the
        key's table was invalidated since that generation was taken.
        """
        entry = CacheEntry(data=data, timestamp=self._clock(), metadata=metadata)
        with self._lock:
            if generation is not None and generation != self._generation_of(
                _table_of(key)
            ):
                logger.info(
                    f"Dropped stale write for {key}",
                    extra={"cache_key": key},
                )
                return None
            self._store[key] = entry
        return entry

    def sweep(self) -> int:
        """Drop entries older than the long TTL. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [
                k for k, e in self._store.items() if now - e.timestamp > self.long_ttl
            ]
            for k in stale:
                del self._store[k]
        if stale:
            logger.debug(f"Swept {len(stale)} stale cache entries")
        return len(stale)

    def invalidate_table(self, table_name: str) -> int:
        """Drop every entry built from ``table_name`` and bump its generation."""
        with self._lock:
            self._generations[table_name] = self._generations.get(table_name, 0) + 1
            doomed = [k for k in self._store if _table_of(k) == table_name]
            for k in doomed:
                del self._store[k]
        logger.info(
            f"Invalidated {len(doomed)} cache entries for {table_name}",
            extra={"table": table_name},
        )
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._store.clear()
