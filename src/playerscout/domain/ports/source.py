"""Port for a stream source backend."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from playerscout.domain.entities.media import (
    ContentRef,
    PlayerResult,
    SearchResult,
    SeriesIndex,
)


@runtime_checkable
class SourceAdapterPort(Protocol):
    """Capability set every backend adapter implements.

    Implementations never raise from these operations: every failure is
    reported on the returned value.
    """

    @property
    def name(self) -> str:
        """Source name used for dispatch (e.g. 'rezka', 'collaps')."""
        ...

    async def search(self, query: str) -> SearchResult: ...

    async def resolve_player(self, ref: ContentRef) -> PlayerResult: ...

    async def resolve_series_index(self, content_id: str) -> SeriesIndex | None:
        """Season -> episodes map, or None when unavailable."""
        ...
