"""Namespaced in-memory cache for dashboard aggregates.

Keys are tuples whose first element names the aggregate family
(``("revenue", ...)``, ``("due-dates", ...)``).  Writes to tasks or clients
drop every family at once with invalidate(); a single family can be dropped
with invalidate("revenue").  Entries also age out after ``ttl_seconds`` so
date-relative answers ("due today") roll over at midnight even with no
writes.
"""

import threading
import time
from typing import Any, Callable, Hashable, Optional

CacheKey = tuple[Hashable, ...]


class TTLCache:
    """Thread-safe cache with expiry, bounded size and namespace invalidation.

    Usage::

        cache = TTLCache(maxsize=64, ttl_seconds=60)
        totals = cache.get_or_set(("revenue",), compute_totals)
        cache.invalidate()            # after any task write
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float = 300.0) -> None:
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        self._entries: dict[CacheKey, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._counters = {"hits": 0, "misses": 0, "invalidations": 0}
        self._generation = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _live(self, key: CacheKey, now: float) -> Optional[tuple[float, Any]]:
        entry = self._entries.get(key)
        if entry is not None and entry[0] < now:
            del self._entries[key]
            return None
        return entry

    def get(self, key: CacheKey) -> Any | None:
        """Cached value for *key*, or None when missing or expired."""
        with self._lock:
            entry = self._live(key, time.monotonic())
            self._counters["hits" if entry else "misses"] += 1
            return entry[1] if entry else None

    def _store(self, key: CacheKey, value: Any) -> None:
        # Caller holds the lock.
        now = time.monotonic()
        if key not in self._entries and len(self._entries) >= self._maxsize:
            for stale in [k for k in self._entries if self._entries[k][0] < now]:
                del self._entries[stale]
            if len(self._entries) >= self._maxsize:
                soonest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[soonest]
        self._entries[key] = (now + self._ttl, value)

    def set(self, key: CacheKey, value: Any) -> None:
        with self._lock:
            self._store(key, value)

    def get_or_set(self, key: CacheKey, factory: Callable[[], Any]) -> Any:
        """Return the cached value, calling *factory* and storing its result on a miss.

        The result is not stored when invalidate() ran while *factory* was
        computing it; the caller still gets the value.
        """
        value = self.get(key)
        if value is None:
            with self._lock:
                generation = self._generation
            value = factory()
            with self._lock:
                if generation == self._generation:
                    self._store(key, value)
        return value

    def invalidate(self, namespace: Optional[Hashable] = None) -> int:
        """Drop every entry, or only those whose key starts with *namespace*.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if namespace is None:
                doomed = list(self._entries)
            else:
                doomed = [k for k in self._entries if k and k[0] == namespace]
            for key in doomed:
                del self._entries[key]
            self._generation += 1
            self._counters["invalidations"] += 1
            return len(doomed)

    def reset(self) -> None:
        """Drop every entry and zero the counters."""
        with self._lock:
            self._entries.clear()
            self._counters = dict.fromkeys(self._counters, 0)

    def __len__(self) -> int:
        with self._lock:
            now = time.monotonic()
            return sum(1 for expires, _ in self._entries.values() if expires >= now)

    def stats(self) -> dict[str, int]:
        """``hits``, ``misses``, ``invalidations`` and live ``size``."""
        size = len(self)
        with self._lock:
            return {**self._counters, "size": size}
