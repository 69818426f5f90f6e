"""Bounded in-memory cache of recent diagnosis results."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Generic, Optional, TypeVar

V = TypeVar("V")

DEFAULT_CAPACITY = 1000


class BoundedCache(Generic[V]):
    """FIFO cache keyed by result id.

    Eviction is strictly by first insertion: reads never promote an entry
    and re-inserting an existing key keeps its original position. Each
    insert and its eviction happen under one lock acquisition.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._entries: OrderedDict[str, V] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def put(self, key: str, value: V) -> Optional[str]:
        """Insert or replace ``key``. Returns the evicted key, if any."""
        with self._lock:
            self._entries[key] = value
            if len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                return evicted
            return None

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            return self._entries.get(key)

    def discard(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self) -> list[str]:
        """Keys in eviction order, oldest first."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
