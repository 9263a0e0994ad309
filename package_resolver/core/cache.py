from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

T = TypeVar("T")


class ConcurrentInMemoryCache:
    """Process-wide key/value cache with compute-once semantics per key."""

    _instance: Optional["ConcurrentInMemoryCache"] = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._cache: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @classmethod
    def instance(cls) -> "ConcurrentInMemoryCache":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_or_add(self, key: str, constructor: Callable[[], T]) -> T:
        if key not in self._cache:
            with self._lock:
                if key not in self._cache:
                    # A raising constructor leaves the key unset.
                    self._cache[key] = constructor()
        return self._cache[key]

    def try_get(self, key: str) -> Tuple[bool, Any]:
        if key in self._cache:
            return True, self._cache[key]
        return False, None

    def remove(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
