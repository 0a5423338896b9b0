"""Cache Port - Interface for the shared player result cache."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from playerscout.domain.entities.media import PlayerResult

PlayerLoader = Callable[[], Awaitable[PlayerResult]]


class ResultCachePort(Protocol):
    """Port for a time-bounded memo of resolved player results.

    Implementations:
      - MemoryResultCache (process-local dict, expiry on read)
    """

    async def get_or_load(
        self, key: str, ttl: float, loader: PlayerLoader
    ) -> PlayerResult:
        """Return the fresh cached value or run *loader* and store its result."""
        ...

    async def remove(self, key: str) -> bool:
        """Delete key. True = deleted, False = did not exist."""
        ...

    async def clear(self) -> None:
        """Delete ALL entries."""
        ...

    async def size(self) -> int:
        """Number of stored entries (expired ones included until read)."""
        ...
