"""In-memory result cache with per-entry TTL and lazy eviction."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


def make_cache_key(protocol: str, network: str, address: str, method: str) -> str:
    """Build a case-insensitive key, e.g. ``aave:ethereum:0xabc:fetchuserpositions``."""
    parts = (getattr(p, "value", p) for p in (protocol, network, address, method))
    return ":".join(str(p) for p in parts).lower()


@dataclass(frozen=True)
class CacheEntry:
    data: Any
    created_at: float
    expires_at: float


@dataclass(frozen=True)
class CacheLookup:
    present: bool
    data: Any = None


_MISS = CacheLookup(present=False)


class ResultCache:
    """Thread-safe key/value store of time-bounded fetch results.

    Reads never extend an entry's lifetime. Expired entries are dropped when
    they are next read; nothing runs in the background.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheLookup:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return _MISS
            if self._clock() > entry.expires_at:
                del self._entries[key]
                logger.debug("Cache entry expired: %s", key)
                return _MISS
            return CacheLookup(present=True, data=entry.data)

    def set(self, key: str, data: Any, ttl: float | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(data=data, created_at=now, expires_at=now + ttl)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
