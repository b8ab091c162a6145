"""
Item cache - short-lived in-memory cache of fetched remote items.

Keeps the network client from refetching the same story or comment while a
user pages back and forth. Entries expire after a TTL and the least recently
used entry is evicted when the cache is full. Not persistent: the SQLite store
is the durable cache.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    value: V
    fetched_at: float


class MemoryCache(Generic[K, V]):
    """Fast in-memory cache with TTL expiry and LRU eviction."""

    def __init__(
        self,
        ttl: float,
        max_size: int = 2048,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.fetched_at >= self.ttl:
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: K, value: V) -> None:
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def delete(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def size(self) -> int:
        return len(self._entries)
