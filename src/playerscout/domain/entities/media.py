"""Domain entities for stream resolution.

Pure value objects with no framework dependencies and no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import quote

# season number -> ascending, duplicate-free episode numbers
SeriesIndex = dict[int, list[int]]


class MediaType(str, Enum):
    MOVIE = "movie"
    SERIES = "series"


class StreamKind(str, Enum):
    """Delivery format of a playable stream."""

    HLS = "hls"
    DASH = "dash"
    PROGRESSIVE = "progressive"


class ErrorKind(str, Enum):
    """Failure taxonomy surfaced on tagged results."""

    NETWORK_FAILURE = "network_failure"
    UPSTREAM_BLOCKED = "upstream_blocked"
    UPSTREAM_REPORTED_ERROR = "upstream_reported_error"
    PARSE_FAILURE = "parse_failure"
    MISSING_PARAMETER = "missing_parameter"
    NOT_FOUND = "not_found"
    UNKNOWN_SOURCE = "unknown_source"


@dataclass(frozen=True)
class ContentRef:
    """Identifies a single resolvable unit (a movie or one episode)."""

    source_name: str
    content_id: str
    media_type: MediaType = MediaType.MOVIE
    season: int | None = None
    episode: int | None = None

    @property
    def is_series(self) -> bool:
        return self.media_type is MediaType.SERIES

    @property
    def has_episode(self) -> bool:
        return self.season is not None and self.episode is not None


@dataclass(frozen=True)
class StreamVariant:
    """One playable stream option (quality tier or voice track)."""

    url: str
    kind: StreamKind
    label: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PlayerResult:
    """Outcome of a player resolution.

    ``variants`` order is significant: the first entry is the adapter's
    preferred default.  Use :meth:`ok` / :meth:`failure` instead of the
    raw constructor so the success invariant holds.
    """

    success: bool
    primary_url: str | None = None
    variants: tuple[StreamVariant, ...] = ()
    error: str | None = None
    error_kind: ErrorKind | None = None
    source: str = ""

    @classmethod
    def ok(
        cls,
        variants: list[StreamVariant] | tuple[StreamVariant, ...],
        *,
        primary_url: str | None = None,
        source: str = "",
    ) -> PlayerResult:
        variants = tuple(variants)
        if primary_url is None and variants:
            primary_url = variants[0].url
        if not primary_url and not variants:
            raise ValueError("successful PlayerResult needs a url or variants")
        return cls(
            success=True,
            primary_url=primary_url,
            variants=variants,
            source=source,
        )

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        source: str = "",
    ) -> PlayerResult:
        return cls(success=False, error=message, error_kind=kind, source=source)


@dataclass(frozen=True)
class SearchHit:
    id: str
    title: str
    media_type: MediaType = MediaType.MOVIE
    year: int | None = None
    poster_url: str | None = None


@dataclass(frozen=True)
class SearchResult:
    """Search outcome of a single source."""

    hits: tuple[SearchHit, ...] = ()
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


def build_cache_key(ref: ContentRef) -> str:
    """Deterministic cache key for *ref*.

    Every component is percent-escaped so that ids containing the
    separator cannot collide with a different ref.
    """
    parts = (
        ref.source_name,
        ref.content_id,
        ref.media_type.value,
        "" if ref.season is None else str(ref.season),
        "" if ref.episode is None else str(ref.episode),
    )
    return "player:" + ":".join(quote(p, safe="") for p in parts)
