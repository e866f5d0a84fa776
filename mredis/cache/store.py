"""
In-Process TTL Store

Backing storage for LocalCacheGateway (``memcached.backend: "local"``): a
bounded mapping with per-key deadlines and least-recently-used eviction.
"""

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Tuple

from ..config.settings import settings

# Deadline value for entries stored without expiry
NO_DEADLINE = 0.0


class TTLStore:
    """
    Bounded key -> (value, deadline) mapping.

    Expired entries are dropped when they are read. When the store is full,
    the entry read or written least recently is evicted.
    """

    def __init__(self, max_size: Optional[int] = None, clock: Callable[[], float] = time.time):
        """
        Args:
            max_size: Maximum number of keys (default from settings.CACHE_MAX_KEYS)
            clock: Time source, replaceable in tests
        """
        self.max_size = max_size if max_size is not None else settings.CACHE_MAX_KEYS
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def _deadline(self, ttl: int) -> float:
        return self.clock() + ttl if ttl > 0 else NO_DEADLINE

    def put(self, key: str, value: Any, ttl: int = 0) -> None:
        """Store ``value`` for ``ttl`` seconds (0 = no expiry)."""
        deadline = self._deadline(ttl)
        with self._lock:
            self._entries.pop(key, None)
            while self._entries and len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (value, deadline)

    def get(self, key: str) -> Optional[Any]:
        """Return the value, or None if the key is missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, deadline = entry
            if deadline != NO_DEADLINE and deadline <= self.clock():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def expires_at(self, key: str) -> Optional[float]:
        """Deadline of a key (0 = never), None if missing."""
        with self._lock:
            entry = self._entries.get(key)
            return entry[1] if entry is not None else None

    def __len__(self) -> int:
        return len(self._entries)
