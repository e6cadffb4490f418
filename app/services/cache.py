import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

from cachetools import TTLCache as _TTLStore

V = TypeVar("V")

DEFAULT_MAXSIZE = 10_000


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    fetched_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class TTLCache(Generic[V]):
    """
    Value + last-fetched-at per key, with explicit invalidation.

    An entry is fresh for ``ttl_seconds``. Past that ``get`` misses, but the
    entry stays readable through ``peek`` until ``retain_seconds`` so callers
    can report the last known value as stale. After that cachetools evicts it.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        *,
        maxsize: int = DEFAULT_MAXSIZE,
        retain_seconds: float | None = None,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        retain = ttl_seconds * 10 if retain_seconds is None else retain_seconds
        if retain < ttl_seconds:
            raise ValueError("retain_seconds must be >= ttl_seconds")

        self.ttl_seconds = ttl_seconds
        self.retain_seconds = retain
        self._clock = clock
        self._entries: _TTLStore[Hashable, CacheEntry[V]] = _TTLStore(maxsize=maxsize, ttl=retain, timer=clock)

    def now(self) -> float:
        return self._clock()

    def get(self, key: Hashable) -> CacheEntry[V] | None:
        """Fresh entry only."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self.now()):
            return entry
        return None

    def peek(self, key: Hashable) -> CacheEntry[V] | None:
        """Entry of any age still retained, for serving stale values."""
        return self._entries.get(key)

    def put(self, key: Hashable, value: V, fetched_at: float | None = None) -> CacheEntry[V]:
        ts = self.now() if fetched_at is None else fetched_at
        entry = CacheEntry(value=value, fetched_at=ts, expires_at=ts + self.ttl_seconds)
        self._entries[key] = entry
        return entry

    def invalidate(self, key: Hashable | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def expire(self) -> None:
        self._entries.expire()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)
