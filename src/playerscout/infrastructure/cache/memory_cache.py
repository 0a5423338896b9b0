"""In-memory player result cache with per-key single-flight loading."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import structlog

from playerscout.domain.entities.media import PlayerResult
from playerscout.domain.ports.cache import PlayerLoader

log = structlog.get_logger(__name__)


class _CacheEntry:
    """Time-bounded cache entry, expired lazily on read."""

    __slots__ = ("value", "created_at", "ttl")

    def __init__(self, value: PlayerResult, created_at: float, ttl: float) -> None:
        self.value = value
        self.created_at = created_at
        self.ttl = ttl

    def is_fresh(self, now: float) -> bool:
        return now - self.created_at <= self.ttl


class MemoryResultCache:
    """Process-local memo of resolved :class:`PlayerResult` values.

    - One ``asyncio.Lock`` per key: concurrent identical requests share a
      single upstream load, unrelated keys never wait on each other.
    - TTL is measured from the completion time of the load.
    - No background sweep; expired entries are replaced on the next read.

    Args:
        failure_ttl_seconds: TTL for unsuccessful results.  ``None`` uses
            the caller's TTL (failures cached like successes), ``0``
            skips storing failures entirely.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        *,
        failure_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, _CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._failure_ttl = failure_ttl_seconds
        self._clock = clock

    async def get_or_load(
        self, key: str, ttl: float, loader: PlayerLoader
    ) -> PlayerResult:
        entry = self._fresh_entry(key)
        if entry is not None:
            log.debug("player_cache_hit", key=key)
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another waiter may have loaded the key while we were queued.
            entry = self._fresh_entry(key)
            if entry is not None:
                log.debug("player_cache_hit", key=key, shared=True)
                return entry.value

            value = await loader()
            effective_ttl = self._ttl_for(value, ttl)
            if effective_ttl > 0:
                self._entries[key] = _CacheEntry(value, self._clock(), effective_ttl)
                log.debug(
                    "player_cache_store",
                    key=key,
                    ttl=effective_ttl,
                    success=value.success,
                )
            else:
                self._entries.pop(key, None)
            return value

    async def remove(self, key: str) -> bool:
        self._drop_idle_lock(key)
        return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        self._entries.clear()
        for key in list(self._locks):
            self._drop_idle_lock(key)
        log.info("player_cache_cleared")

    async def size(self) -> int:
        return len(self._entries)

    def _drop_idle_lock(self, key: str) -> None:
        # A held lock belongs to a load in flight; later callers must queue on it.
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def _fresh_entry(self, key: str) -> _CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            return entry
        return None

    def _ttl_for(self, value: PlayerResult, ttl: float) -> float:
        if value.success or self._failure_ttl is None:
            return ttl
        return self._failure_ttl
