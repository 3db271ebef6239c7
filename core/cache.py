"""
In-process expiring cache.

Usage:
    from core.cache import TTLCache

    roles: TTLCache[tuple[str, int], str] = TTLCache(ttl=30)
    roles.set(("user-1", 7), "admin")
    roles.get(("user-1", 7))

Entries live only in the memory of the current process. In a deployment with
several workers or instances each one holds its own copy, so a value may be
stale for up to ``ttl`` seconds after the underlying record changes.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value: V
    inserted_at: float


class TTLCache(Generic[K, V]):
    """Key-value cache where every entry expires a fixed time after insertion."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl: Time to live in seconds
            clock: Monotonic time source, injectable for tests
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[K, _Entry[V]] = {}
        self._lock = threading.Lock()

    def _is_expired(self, entry: _Entry[V], now: float) -> bool:
        # An entry read exactly at the TTL boundary is already expired
        return now - entry.inserted_at >= self.ttl

    def get(self, key: K) -> Optional[V]:
        """Return the cached value, or None when missing or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, now):
                del self._entries[key]
                return None
            return entry.value

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None

    def set(self, key: K, value: V) -> None:
        """Store a value; the expiry clock restarts on every set."""
        with self._lock:
            self._entries[key] = _Entry(value=value, inserted_at=self._clock())

    def delete(self, key: K) -> bool:
        """Remove a key. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_where(self, predicate: Callable[[K], bool]) -> int:
        """Remove every key matching predicate. Returns the number removed."""
        with self._lock:
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Evicted {len(doomed)} cache entries")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop expired entries eagerly. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
