"""Composition root: wires the cache and the source adapters from config."""

from __future__ import annotations

import structlog

from playerscout.application.use_cases import ResolutionOrchestrator
from playerscout.domain.ports.cache import ResultCachePort
from playerscout.infrastructure.cache import MemoryResultCache
from playerscout.infrastructure.config.schema import AppConfig
from playerscout.infrastructure.sources import (
    CollapsSource,
    HttpxSourceBase,
    RezkaSource,
    VideoHubSource,
)

log = structlog.get_logger(__name__)


def build_orchestrator(
    config: AppConfig, *, cache: ResultCachePort | None = None
) -> ResolutionOrchestrator:
    """Build the orchestrator with every enabled source.

    Order matters:
        1. Cache (shared by all adapters)
        2. Adapters (each gets its own proxy pool and relay host)
        3. Orchestrator (default fallback order from ``sources.priority``)
    """
    if cache is None:
        cache = MemoryResultCache(failure_ttl_seconds=config.cache_failure_ttl_seconds)
    log.info(
        "cache_initialized",
        ttl=config.cache_ttl_seconds,
        failure_ttl=config.cache_failure_ttl_seconds,
    )

    common = {
        "cache": cache,
        "cache_ttl_seconds": config.cache_ttl_seconds,
        "timeout": config.http_timeout_seconds,
        "user_agent": config.http_user_agent,
    }
    sources = config.sources
    candidates: list[tuple[bool, type[HttpxSourceBase], object]] = [
        (sources.rezka.enabled, RezkaSource, sources.rezka),
        (sources.collaps.enabled, CollapsSource, sources.collaps),
        (sources.videohub.enabled, VideoHubSource, sources.videohub),
    ]

    orchestrator = ResolutionOrchestrator(
        default_priority=sources.priority,
        search_timeout_seconds=config.search_timeout_seconds,
    )
    for enabled, factory, source_config in candidates:
        if not enabled:
            log.info("source_disabled", source=factory.name)
            continue
        adapter = factory(source_config, **common)  # type: ignore[call-arg]
        orchestrator.register(adapter)

    log.info("sources_registered", sources=orchestrator.sources)
    return orchestrator
