"""Bounded LRU container used for result caches.

Lock-protected ``OrderedDict``; satisfies the get/put/clear/size/capacity
shape the engine and desensitizers expect from their cache collaborator.
"""

from __future__ import annotations
import threading
from collections import OrderedDict
from typing import Any

from .errors import ConfigurationError

_MISSING = object()


class LRUCache:
    """Least-recently-used cache with a fixed capacity."""

    __slots__ = ("_data", "_capacity", "_lock")

    def __init__(self, capacity: int = 1000) -> None:
        if capacity <= 0:
            raise ConfigurationError("cache capacity must be positive")
        self._data: OrderedDict[str, Any] = OrderedDict()
        self._capacity = capacity
        self._lock = threading.Lock()

    def get(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, found)``; a hit refreshes recency."""
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                return None, False
            self._data.move_to_end(key)
            return value, True

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            self._data[key] = value
            while len(self._data) > self._capacity:
                self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._data)

    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data
