"""
cache.py - In-process TTL cache for upstream API results.

The fresh tier is a cachetools TLRUCache with a per-entry TTL; once an
entry expires there, get() reports a miss while get_stale() still hands
back the last stored value for fallback paths. Meant for use from a
single event loop, so there is no locking.
"""

import logging
import time
from typing import Any, Callable, Dict, NamedTuple, Optional

from cachetools import TLRUCache

logger = logging.getLogger("cache")

DEFAULT_TTL = 30.0  # seconds
MAX_FRESH_ENTRIES = 1024


class CacheEntry(NamedTuple):
    value: Any
    ttl: float


def _expires_at(key: str, entry: CacheEntry, now: float) -> float:
    return now + entry.ttl


class TTLCache:
    def __init__(self, default_ttl: float = DEFAULT_TTL,
                 clock: Callable[[], float] = time.monotonic,
                 maxsize: int = MAX_FRESH_ENTRIES):
        self.default_ttl = default_ttl
        self._fresh: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=clock)
        self._last: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the value for key if it is still fresh, else None."""
        entry = self._fresh.get(key)
        return entry.value if entry is not None else None

    def get_stale(self, key: str) -> Optional[Any]:
        """Return the last value stored under key, ignoring its TTL."""
        return self._last.get(key)

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        ttl = self.default_ttl if ttl is None else ttl
        self._fresh[key] = CacheEntry(value, ttl)
        self._last[key] = value
        logger.debug("Cached %s (ttl=%.1fs)", key, ttl)

    def __contains__(self, key: str) -> bool:
        return key in self._last

    def __len__(self) -> int:
        return len(self._last)
