"""In-process TTL + LRU cache.

Both bounds apply: a record is absent once its expiry has passed, and the
least recently used record is reclaimed as soon as ``max_entries`` is
exceeded, even if its TTL has not elapsed.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from tierconf.cache.backend import CacheBackend, check_ttl

logger = logging.getLogger(__name__)


@dataclass
class CacheRecord:
    """Cached value with its absolute expiry time."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoryCache(CacheBackend):
    """Thread-safe bounded cache for a single process.

    Args:
        max_entries: Capacity before least-recently-used reclamation.
        clock: Monotonic time source in seconds; injectable for tests.
    """

    def __init__(self, max_entries: int = 10_000, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock
        self._records: "OrderedDict[str, CacheRecord]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._evictions = 0
        self._expirations = 0
        self._invalidations = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                self._misses += 1
                return None
            if record.is_expired(self._clock()):
                del self._records[key]
                self._expirations += 1
                self._misses += 1
                return None
            self._records.move_to_end(key)
            self._hits += 1
            return record.value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        check_ttl(ttl_seconds)
        with self._lock:
            self._records[key] = CacheRecord(value=value, expires_at=self._clock() + ttl_seconds)
            self._records.move_to_end(key)
            self._sets += 1
            while len(self._records) > self.max_entries:
                evicted, _ = self._records.popitem(last=False)
                self._evictions += 1
                logger.debug("Cache capacity reached, evicted %s", evicted)

    def delete(self, key: str) -> bool:
        with self._lock:
            if self._records.pop(key, None) is None:
                return False
            self._invalidations += 1
            return True

    def delete_pattern(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._records if k.startswith(prefix)]
            for key in doomed:
                del self._records[key]
            self._invalidations += len(doomed)
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def purge_expired(self) -> int:
        """Drop every expired record. Returns count dropped."""
        with self._lock:
            now = self._clock()
            expired = [k for k, r in self._records.items() if r.is_expired(now)]
            for key in expired:
                del self._records[key]
            self._expirations += len(expired)
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            record = self._records.get(key)
            return record is not None and not record.is_expired(self._clock())

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    def stats(self) -> Dict[str, Any]:
        """Cache performance statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "backend": "memory",
                "size": len(self._records),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 4) if total else 0.0,
                "sets": self._sets,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "invalidations": self._invalidations,
            }

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = self._misses = self._sets = 0
            self._evictions = self._expirations = self._invalidations = 0
