"""Shared base class for httpx-based source adapters.

Handles what every backend needs: one lazily created client per
outbound proxy, the CORS relay rewrite, proxy fallback, block-page
detection, JSON decoding, the shared result cache and the conversion of
:class:`SourceError` into tagged results at the public boundary.

Subclasses implement the wire protocol in ``_fetch_player``,
``_search`` and ``_fetch_series_index``; the public operations never
raise.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any

import httpx
import structlog

from playerscout.domain.entities.media import (
    ContentRef,
    ErrorKind,
    PlayerResult,
    SearchHit,
    SearchResult,
    SeriesIndex,
    build_cache_key,
)
from playerscout.domain.exceptions import (
    MissingParameter,
    NetworkFailure,
    ParseFailure,
    SourceError,
    UpstreamBlocked,
)
from playerscout.domain.ports.cache import ResultCachePort
from playerscout.infrastructure.cache.memory_cache import MemoryResultCache
from playerscout.infrastructure.config.schema import SourceConfig
from playerscout.infrastructure.proxy.rotator import ProxyRotator

from .constants import (
    CHALLENGE_MARKERS,
    DEFAULT_CACHE_TTL,
    DEFAULT_CLIENT_TIMEOUT,
    DEFAULT_USER_AGENT,
)

_BLOCK_STATUS_CODES = (403, 503)


class HttpxSourceBase:
    """Shared base for httpx-based source adapters.

    Subclasses **must** set:
    - ``name``

    Subclasses **must** override:
    - ``_fetch_player()``

    Subclasses **may** override:
    - ``_search()``, ``_fetch_series_index()``
    - ``_detect_block()`` for backend-specific access-error pages
    """

    # --- Must be set by subclass ---
    name: str = ""

    def __init__(
        self,
        config: SourceConfig,
        base_url: str,
        *,
        cache: ResultCachePort | None = None,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL,
        timeout: float = DEFAULT_CLIENT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._relay_host = config.relay_host
        self._rotator = ProxyRotator(config.proxies)
        self._cache: ResultCachePort = (
            cache if cache is not None else MemoryResultCache()
        )
        self._cache_ttl = (
            config.cache_ttl_seconds
            if config.cache_ttl_seconds is not None
            else cache_ttl_seconds
        )
        self._timeout = timeout
        self._user_agent = user_agent
        self._clients: dict[str | None, httpx.AsyncClient] = {}
        self._log = structlog.get_logger(self.name or __name__)

    @property
    def api_base(self) -> str:
        """Base URL with the CORS relay rewrite applied."""
        if self._relay_host:
            return f"{self._relay_host}/{self.base_url}"
        return self.base_url

    # ------------------------------------------------------------------
    # Public capability set
    # ------------------------------------------------------------------

    async def resolve_player(self, ref: ContentRef) -> PlayerResult:
        """Resolve *ref* through the shared cache.

        A series request without season and episode fails before any
        network request is made.
        """
        if ref.is_series and not ref.has_episode:
            return self._failure(
                MissingParameter("Season and episode are required for series")
            )

        ref = dataclasses.replace(ref, source_name=self.name)
        return await self._cache.get_or_load(
            build_cache_key(ref),
            self._cache_ttl,
            lambda: self._load_player(ref),
        )

    async def search(self, query: str) -> SearchResult:
        try:
            hits = await self._search(query)
        except SourceError as exc:
            self._log.warning(
                "source_search_failed",
                source=self.name,
                kind=exc.kind.value,
                error=str(exc),
            )
            return SearchResult(error=str(exc))
        except Exception as exc:  # noqa: BLE001
            self._log.exception("source_search_crashed", source=self.name)
            return SearchResult(error=f"Unexpected error: {exc}")

        self._log.info("source_search_done", source=self.name, hits=len(hits))
        return SearchResult(hits=tuple(hits))

    async def resolve_series_index(self, content_id: str) -> SeriesIndex | None:
        try:
            return await self._fetch_series_index(content_id)
        except SourceError as exc:
            self._log.warning(
                "source_series_index_failed",
                source=self.name,
                content_id=content_id,
                error=str(exc),
            )
        except Exception:  # noqa: BLE001
            self._log.exception(
                "source_series_index_crashed",
                source=self.name,
                content_id=content_id,
            )
        return None

    async def cleanup(self) -> None:
        """Close all httpx clients."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()

    # ------------------------------------------------------------------
    # Protocol hooks (subclass implements)
    # ------------------------------------------------------------------

    async def _fetch_player(self, ref: ContentRef) -> PlayerResult:
        raise NotImplementedError(
            f"{type(self).__name__}._fetch_player() not implemented"
        )

    async def _search(self, query: str) -> list[SearchHit]:
        raise NotImplementedError(f"{type(self).__name__}._search() not implemented")

    async def _fetch_series_index(self, content_id: str) -> SeriesIndex | None:
        return None

    def _detect_block(self, body: str) -> None:
        """Raise :class:`UpstreamBlocked` if *body* is a challenge page."""
        for marker in CHALLENGE_MARKERS:
            if marker in body:
                raise UpstreamBlocked(
                    f"{self.name} answered with a challenge page ({marker})"
                )

    # ------------------------------------------------------------------
    # Boundary conversion
    # ------------------------------------------------------------------

    async def _load_player(self, ref: ContentRef) -> PlayerResult:
        try:
            result = await self._fetch_player(ref)
        except SourceError as exc:
            self._log.warning(
                "source_resolve_failed",
                source=self.name,
                content_id=ref.content_id,
                kind=exc.kind.value,
                error=str(exc),
            )
            return self._failure(exc)
        except Exception as exc:  # noqa: BLE001
            self._log.exception(
                "source_resolve_crashed", source=self.name, content_id=ref.content_id
            )
            return PlayerResult.failure(
                ErrorKind.PARSE_FAILURE, f"Unexpected error: {exc}", source=self.name
            )

        self._log.info(
            "source_resolved",
            source=self.name,
            content_id=ref.content_id,
            variants=len(result.variants),
        )
        return result

    def _failure(self, exc: SourceError) -> PlayerResult:
        return PlayerResult.failure(exc.kind, str(exc), source=self.name)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _client_for(self, proxy: str | None) -> httpx.AsyncClient:
        """Return the client bound to *proxy*, creating it on first use."""
        client = self._clients.get(proxy)
        if client is None:
            client = httpx.AsyncClient(
                proxy=proxy,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
            )
            self._clients[proxy] = client
        return client

    async def _request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """Send a request, falling back across the proxy pool.

        Each pool entry is tried at most once per call.  A block page
        advances the rotator but is raised immediately.
        """
        attempts = max(1, len(self._rotator))
        last_error: NetworkFailure | None = None

        for _ in range(attempts):
            proxy = self._rotator.current()
            client = self._client_for(proxy)
            try:
                resp = await client.request(method, url, **kwargs)
            except httpx.TimeoutException:
                last_error = NetworkFailure(f"Timeout fetching {url}")
            except httpx.HTTPError as exc:
                last_error = NetworkFailure(f"Request to {url} failed: {exc}")
            else:
                if resp.is_success:
                    return resp
                if resp.status_code in _BLOCK_STATUS_CODES:
                    try:
                        self._detect_block(resp.text)
                    except UpstreamBlocked:
                        self._rotator.advance()
                        raise
                last_error = NetworkFailure(f"HTTP {resp.status_code} from {url}")

            self._log.warning(
                "source_request_failed",
                source=self.name,
                url=url,
                proxy=proxy,
                error=str(last_error),
            )
            self._rotator.advance()

        assert last_error is not None
        raise last_error

    async def _fetch_text(self, method: str, url: str, **kwargs: Any) -> str:
        resp = await self._request(method, url, **kwargs)
        body = resp.text
        self._detect_block(body)
        return body

    async def _fetch_json(self, method: str, url: str, **kwargs: Any) -> Any:
        body = await self._fetch_text(method, url, **kwargs)
        try:
            return json.loads(body)
        except ValueError as exc:
            raise ParseFailure(f"Invalid JSON from {self.name}", body) from exc
