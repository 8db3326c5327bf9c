"""
ModBoard - Bounded Cache
========================

Size-bounded LRU cache with optional per-entry expiry.

DESIGN:
    Caches that used to be unbounded module-level dicts (usernames,
    processed OAuth codes) are explicit TTLCache instances owned by the
    application context. The size bound evicts the least recently used
    entry; a ttl of None keeps entries for the life of the process.
"""

import time
from collections import OrderedDict
from datetime import timedelta
from typing import Callable, Generic, Optional, Tuple, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """
    LRU cache with an optional time-to-live.

    Safe for single-threaded async use. Every coroutine touching it runs on
    the same event loop, and no method awaits.
    """

    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        max_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ttl: Time-to-live for entries, None for no expiry.
            max_size: Maximum entries before LRU eviction.
            clock: Monotonic seconds source.
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._ttl = ttl.total_seconds() if ttl else None
        self._max_size = max_size
        self._clock = clock
        self._cache: "OrderedDict[K, Tuple[V, float]]" = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def _expired(self, stored_at: float) -> bool:
        return self._ttl is not None and self._clock() - stored_at > self._ttl

    def get(self, key: K) -> Optional[V]:
        """Return the value, or None if missing or expired."""
        item = self._cache.get(key)
        if item is None:
            return None

        value, stored_at = item
        if self._expired(stored_at):
            self._cache.pop(key, None)
            return None

        self._cache.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        """Store a value, evicting the least recently used entry if full."""
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self._max_size:
            self._cache.popitem(last=False)

        self._cache[key] = (value, self._clock())

    def add_if_absent(self, key: K, value: V) -> bool:
        """
        Store a value only when the key is not already live.

        Returns:
            True if stored, False if a live entry already existed.
        """
        if self.get(key) is not None:
            return False
        self.set(key, value)
        return True

    def delete(self, key: K) -> bool:
        return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        self._cache.clear()

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        if self._ttl is None:
            return 0
        expired = [k for k, (_, stored_at) in self._cache.items() if self._expired(stored_at)]
        for key in expired:
            self._cache.pop(key, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None


__all__ = ["TTLCache"]
