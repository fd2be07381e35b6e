"""
Bounded, thread-safe result cache.

Memoizes semantic analysis and inference results with LRU eviction and an
optional time-to-live so the caches cannot grow without bound.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional, Tuple


@dataclass
class CacheStats:
    """Statistics for a result cache."""

    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class BoundedCache:
    """
    LRU cache with optional TTL.

    Features:
    - Least recently used entry evicted once ``max_size`` is reached
    - Entries older than ``ttl`` seconds are treated as misses
    - All access guarded by a lock
    """

    def __init__(
        self,
        max_size: int = 1024,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        # key -> (stored_at, value); OrderedDict order is LRU order
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: Hashable) -> Tuple[bool, Any]:
        """
        Look up ``key``.

        Returns:
            (True, value) on a hit, (False, None) on a miss
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return False, None

            stored_at, value = entry
            if self._ttl is not None and self._clock() - stored_at > self._ttl:
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                return False, None

            self._entries.move_to_end(key)
            self._hits += 1
            return True, value

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = (self._clock(), value)
            self._evict_overflow()

    def replace(self, key: Hashable, value: Any) -> bool:
        """Swap the value of an existing entry, keeping its age. False if absent."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            self._entries[key] = (entry[0], value)
            return True

    def _evict_overflow(self) -> None:
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
            self._evictions += 1

    def resize(self, max_size: int, ttl: Optional[float] = None) -> None:
        """Change capacity and TTL, evicting as needed."""
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        with self._lock:
            self._max_size = max_size
            self._ttl = ttl
            self._evict_overflow()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries


def _canonical(value: Any) -> Hashable:
    """Hashable, type-tagged form of ``value``; mapping and set order is dropped."""
    if isinstance(value, dict):
        items = [(_canonical(k), _canonical(v)) for k, v in value.items()]
        return ("dict", tuple(sorted(items, key=repr)))
    if isinstance(value, (list, tuple)):
        return (type(value).__name__, tuple(_canonical(v) for v in value))
    if isinstance(value, (set, frozenset)):
        return ("set", tuple(sorted((_canonical(v) for v in value), key=repr)))
    if value is None or isinstance(value, (bool, int, float, str)):
        return (type(value).__name__, value)
    return (type(value).__name__, repr(value))


def make_cache_key(payload: Any) -> Optional[Hashable]:
    """
    Exact-match cache key for an arbitrary request payload.

    Keys are type-tagged, so ``{1: x}`` and ``{"1": x}`` differ, and mixed key
    types inside one mapping are fine.

    Returns:
        The key, or None when the payload cannot be keyed (self-referencing
        containers, a ``__repr__`` that raises); such requests skip the cache.
    """
    try:
        return _canonical(payload)
    except Exception:
        return None
