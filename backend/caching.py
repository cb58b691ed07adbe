"""Bounded, thread-safe caches shared by the history aggregator and the provider client."""

from collections import OrderedDict
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Hashable, Optional
import logging

logger = logging.getLogger(__name__)

_MISSING = object()


class FIFOCache:
    """
    Thread-safe cache with a hard size bound.

    Inserting a new key beyond the bound evicts the oldest-inserted key.
    Reads do not refresh an entry's position (FIFO, not LRU); overwriting an
    existing key keeps its original position.
    """

    def __init__(self, max_size: int = 100, name: str = "cache"):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._max_size = max_size
        self._lock = Lock()
        self.name = name
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                self.misses += 1
                return default
            self.hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if key not in self._data and len(self._data) >= self._max_size:
                evicted, _ = self._data.popitem(last=False)
                logger.debug(f"{self.name}: evicted {evicted!r}")
            self._data[key] = value

    def get_or_set(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        """Return the cached value or compute, store and return it.

        ``factory`` runs outside the lock; concurrent misses on one key may
        both compute and the last write wins.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            logger.debug(f"{self.name}: hit for {key!r}")
            return value
        value = factory()
        self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self):
        with self._lock:
            return list(self._data.keys())

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


def time_bucket(moment: datetime, bucket_minutes: int = 10) -> str:
    """Wall-clock time floored to the enclosing ``bucket_minutes`` window"""
    floored = moment.minute - moment.minute % bucket_minutes
    return moment.strftime("%Y-%m-%dT%H:") + f"{floored:02d}"


def bucketed_key(owner: Hashable, moment: datetime, bucket_minutes: int = 10,
                 prefix: Optional[str] = None) -> str:
    parts = [str(owner), time_bucket(moment, bucket_minutes)]
    if prefix:
        parts.insert(0, prefix)
    return "_".join(parts)
