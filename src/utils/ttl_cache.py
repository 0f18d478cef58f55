"""Per-instance key/value cache whose entries expire after a fixed lifetime."""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Expiry is checked on read; no background eviction.

    ``maxsize`` bounds memory by evicting the least recently used entry, the
    same policy the enrichment caches used. ``clock`` is injectable so tests can
    advance time without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        maxsize: int = 1_024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = float(ttl_seconds)
        self._maxsize = max(0, int(maxsize))
        self._clock = clock
        self._store: "OrderedDict[str, Tuple[V, float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> Optional[V]:
        entry = self._store.get(key)
        if entry is None:
            self.misses += 1
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            self.misses += 1
            return None
        self._store.move_to_end(key)
        self.hits += 1
        return value

    def set(self, key: str, value: V) -> None:
        if self._maxsize == 0:
            return
        self._store[key] = (value, self._clock() + self._ttl)
        self._store.move_to_end(key)
        while len(self._store) > self._maxsize:
            self._store.popitem(last=False)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        entry = self._store.get(key)
        return entry is not None and self._clock() < entry[1]


def hours(value: float) -> float:
    return float(value) * 3600.0


__all__ = ["TTLCache", "hours"]
