"""Shared test fixtures for the playerscout test suite."""

from __future__ import annotations

import pytest

from playerscout.domain.entities import ContentRef, MediaType
from playerscout.infrastructure.cache import MemoryResultCache
from playerscout.infrastructure.config import (
    CollapsConfig,
    RezkaConfig,
    VideoHubConfig,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_ref() -> ContentRef:
    return ContentRef(source_name="collaps", content_id="tt1375666")


@pytest.fixture()
def episode_ref() -> ContentRef:
    return ContentRef(
        source_name="collaps",
        content_id="tt0944947",
        media_type=MediaType.SERIES,
        season=1,
        episode=2,
    )


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> MemoryResultCache:
    """Fresh per-test result cache on the fake clock."""
    return MemoryResultCache(clock=clock)


@pytest.fixture()
def rezka_config() -> RezkaConfig:
    """Direct connection (no relay) so respx routes match the origin."""
    return RezkaConfig(relay_host=None)


@pytest.fixture()
def collaps_config() -> CollapsConfig:
    return CollapsConfig(relay_host=None)


@pytest.fixture()
def videohub_config() -> VideoHubConfig:
    return VideoHubConfig(relay_host=None)
