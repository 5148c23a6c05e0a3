"""
Per-process TTL cache for question counts

Question selection needs the size of the filtered candidate set on every
draw; counting is a full scan, so counts are kept for a short TTL keyed by
filter signature. The cache is per process and may be stale by up to the TTL.
The clock is injectable so tests can move time forward.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """Key -> value cache where each entry expires ``ttl_seconds`` after it is set"""

    def __init__(self, ttl_seconds: float = 300.0, clock: Optional[Clock] = None):
        self.logger = logging.getLogger(__name__)
        self.default_ttl = ttl_seconds
        self.clock = clock or time.monotonic
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None if missing/expired"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self.clock() >= entry.expires_at:
                del self._entries[key]
                self._misses += 1
                self.logger.debug(f"Cache expired for key: {key}")
                return None

            self._hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self.clock() + ttl)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value or compute, store and return it"""
        value = self.get(key)
        if value is None:
            value = loader()
            self.set(key, value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear_all(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "ttl_seconds": self.default_ttl,
            }
