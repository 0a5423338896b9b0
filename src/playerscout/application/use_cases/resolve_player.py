"""Stream resolution use cases: single source, fallback chain, fan-out search."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace as dataclass_replace

import structlog

from playerscout.domain.entities.media import (
    ContentRef,
    ErrorKind,
    PlayerResult,
    SearchResult,
    SeriesIndex,
)
from playerscout.domain.ports.source import SourceAdapterPort

log = structlog.get_logger(__name__)

ALL_SOURCES_FAILED = "All sources failed"


class ResolutionOrchestrator:
    """Single entry point over the registered source adapters.

    Flow:
        - ``resolve_player``: dispatch to one named adapter.
        - ``resolve_from_priority_list``: try sources strictly in order,
          first success wins.
        - ``search_all``: query every adapter concurrently.

    Source names are matched case-insensitively.
    """

    def __init__(
        self,
        adapters: Iterable[SourceAdapterPort] = (),
        *,
        default_priority: Sequence[str] = (),
        search_timeout_seconds: float = 30.0,
    ):
        """Initialize the orchestrator.

        Args:
            adapters: Adapters to register up front.
            default_priority: Fallback order used when the caller passes none.
            search_timeout_seconds: Per-adapter timeout for ``search_all``.
        """
        self._adapters: dict[str, SourceAdapterPort] = {}
        self._default_priority = list(default_priority)
        self._search_timeout = search_timeout_seconds
        for adapter in adapters:
            self.register(adapter)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, adapter: SourceAdapterPort) -> None:
        key = adapter.name.lower()
        if key in self._adapters:
            log.warning("source_replaced", source=key)
        self._adapters[key] = adapter
        log.debug("source_registered", source=key)

    @property
    def sources(self) -> list[str]:
        """Registered source names, in registration order."""
        return list(self._adapters)

    def get(self, source_name: str) -> SourceAdapterPort | None:
        return self._adapters.get(source_name.lower())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_player(self, source_name: str, ref: ContentRef) -> PlayerResult:
        """Resolve *ref* against one named adapter (result passed through)."""
        adapter = self.get(source_name)
        if adapter is None:
            log.warning("source_unknown", source=source_name)
            return PlayerResult.failure(
                ErrorKind.UNKNOWN_SOURCE,
                f"Unknown source: {source_name}",
                source=source_name,
            )

        try:
            return await adapter.resolve_player(ref)
        except Exception as exc:  # noqa: BLE001
            log.exception("source_adapter_raised", source=source_name)
            return PlayerResult.failure(
                ErrorKind.PARSE_FAILURE,
                f"Unexpected error: {exc}",
                source=adapter.name,
            )

    async def resolve_from_priority_list(
        self,
        sources: Sequence[str] | None,
        ref: ContentRef,
        overrides: Mapping[str, str] | None = None,
    ) -> PlayerResult:
        """Try *sources* in order and return the first successful result.

        Args:
            sources: Source names in priority order (``None`` = default order).
            ref: Shared request; ``content_id`` is the default id.
            overrides: Per-source content id, keyed by source name.

        Returns:
            The first successful result, or a failure carrying the last
            error as ``"<source>: <message>"``.
        """
        order = list(sources) if sources is not None else self._default_priority
        ids = {k.lower(): v for k, v in (overrides or {}).items()}

        last_error: str | None = None
        last_kind: ErrorKind | None = None
        for source_name in order:
            content_id = ids.get(source_name.lower(), ref.content_id)
            attempt = dataclass_replace(
                ref, source_name=source_name, content_id=content_id
            )
            result = await self.resolve_player(source_name, attempt)
            if result.success:
                log.info(
                    "fallback_resolved",
                    source=source_name,
                    content_id=content_id,
                )
                return result

            last_error = f"{source_name}: {result.error}"
            last_kind = result.error_kind
            log.info("fallback_next_source", source=source_name, error=result.error)

        log.warning("fallback_exhausted", sources=order, error=last_error)
        return PlayerResult.failure(
            last_kind or ErrorKind.NOT_FOUND,
            last_error or ALL_SOURCES_FAILED,
        )

    async def resolve_series_index(
        self, source_name: str, content_id: str
    ) -> SeriesIndex | None:
        adapter = self.get(source_name)
        if adapter is None:
            log.warning("source_unknown", source=source_name)
            return None
        return await adapter.resolve_series_index(content_id)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, source_name: str, query: str) -> SearchResult:
        adapter = self.get(source_name)
        if adapter is None:
            return SearchResult(error=f"Unknown source: {source_name}")
        return await self._guarded_search(adapter, query)

    async def search_all(self, query: str) -> dict[str, SearchResult]:
        """Search every registered adapter concurrently.

        Always returns one entry per adapter; an adapter that raises or
        times out gets an entry carrying only an error.
        """
        names = list(self._adapters)
        results = await asyncio.gather(
            *(self._guarded_search(self._adapters[n], query) for n in names)
        )
        log.info(
            "search_all_done",
            query=query,
            sources=len(names),
            failed=sum(1 for r in results if not r.success),
        )
        return dict(zip(names, results))

    async def _guarded_search(
        self, adapter: SourceAdapterPort, query: str
    ) -> SearchResult:
        try:
            return await asyncio.wait_for(
                adapter.search(query), timeout=self._search_timeout
            )
        except asyncio.TimeoutError:
            log.warning(
                "source_search_timeout",
                source=adapter.name,
                timeout=self._search_timeout,
            )
            return SearchResult(
                error=f"Search timed out after {self._search_timeout:g}s"
            )
        except Exception as exc:  # noqa: BLE001
            log.warning("source_search_raised", source=adapter.name, error=str(exc))
            return SearchResult(error=str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def cleanup(self) -> None:
        """Release adapter resources (HTTP clients)."""
        for name, adapter in self._adapters.items():
            close = getattr(adapter, "cleanup", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:  # noqa: BLE001
                log.warning("source_cleanup_failed", source=name, exc_info=True)
