"""
Keyed memoization with a per-entry TTL.

Backed by cachetools.TLRUCache so each ``get_or_compute`` call can pick its
own time-to-live. Keys are any hashable value; the tax resolver uses tuples.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, Protocol

import structlog
from cachetools import TLRUCache

logger = structlog.get_logger(__name__)

Loader = Callable[[], Awaitable[Any]]

_MISSING = object()


class Cache(Protocol):
    async def get_or_compute(self, key: Hashable, ttl_seconds: int, loader: Loader) -> Any: ...


def _entry_ttu(_key: Hashable, entry: tuple[float, Any], now: float) -> float:
    ttl, _value = entry
    return now + ttl


class TTLMemoryCache:
    """Process-local cache; entries expire ttl_seconds after they were stored."""

    def __init__(self, maxsize: int = 10000, timer: Callable[[], float] = time.monotonic):
        self._store: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_ttu, timer=timer)

    async def get_or_compute(self, key: Hashable, ttl_seconds: int, loader: Loader) -> Any:
        entry = self._store.get(key, _MISSING)
        if entry is not _MISSING:
            return entry[1]

        value = await loader()
        self._store[key] = (float(ttl_seconds), value)
        logger.debug("cache_stored", key=repr(key), ttl_seconds=ttl_seconds)
        return value

    def forget(self, key: Hashable) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
