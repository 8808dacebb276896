"""
Bounded, expiring query-result cache.

Keys are ``(statement, params)`` pairs, so two requests with the same
normalized filters and the same query shape share an entry. Entries are
evicted least-recently-used once ``max_entries`` is reached and expire
``ttl_sec`` after they were written. Every read and write happens under
one lock; concurrent misses may both execute and both write, and the last
writer wins.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Union

Rows = list[dict[str, Any]]
CacheKey = tuple[str, tuple]


class _Miss:
    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS = _Miss()


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
        }


class QueryResultCache:
    """
    LRU + TTL cache for query rows.

    Usage:
        cache = QueryResultCache(max_entries=512, ttl_sec=3600)
        rows = cache.get(key)
        if rows is MISS:
            rows = store.fetch_all(*key)
            cache.put(key, rows)
    """

    def __init__(
        self,
        max_entries: int = 512,
        ttl_sec: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self.max_entries = max_entries
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Rows]] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = CacheStats()

    @staticmethod
    def _copy(rows: Rows) -> Rows:
        return [dict(row) for row in rows]

    def get(self, key: Hashable) -> Union[Rows, _Miss]:
        """Cached rows for key, or MISS when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return MISS
            expires_at, rows = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self._stats.expirations += 1
                self._stats.misses += 1
                return MISS
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return self._copy(rows)

    def put(self, key: Hashable, rows: Rows) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_sec, self._copy(rows))
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self._stats.evictions += 1

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry; True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry[0]

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(**self._stats.to_dict())
