"""Two-stage JSON API backend (CDN Video Hub).

1. ``/playlist`` lists candidates (one per voice track, per episode for
   serials) with an opaque video id.
2. ``/video/<id>`` returns the stream URLs of one candidate.

Candidates are resolved concurrently; a failing candidate is skipped
and the call only fails when none of them produced a stream.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from playerscout.domain.entities.media import (
    ContentRef,
    PlayerResult,
    SearchResult,
    SeriesIndex,
    StreamKind,
    StreamVariant,
)
from playerscout.domain.exceptions import (
    MissingParameter,
    NotFound,
    ParseFailure,
    SourceError,
)
from playerscout.infrastructure.config.schema import VideoHubConfig

from .base import HttpxSourceBase

_HLS_FIELDS = ("hlsUrl", "hls")
_DASH_FIELDS = ("dashUrl", "dash", "dasha")

# Progressive tiers, best first.
PROGRESSIVE_TIERS: tuple[tuple[str, str], ...] = (
    ("mpeg4kUrl", "4K"),
    ("mpeg2kUrl", "2K"),
    ("mpegFullHdUrl", "Full HD"),
    ("mpegHighUrl", "HD"),
    ("mpegMediumUrl", "Medium"),
    ("mpegLowUrl", "Low"),
    ("mpegLowestUrl", "Lowest"),
)


@dataclass(frozen=True)
class Candidate:
    """One playlist entry."""

    video_id: str
    season: int | None = None
    episode: int | None = None
    voice_studio: str = ""
    voice_type: str = ""

    @property
    def voice(self) -> str:
        return self.voice_studio or self.voice_type


@dataclass(frozen=True)
class Playlist:
    is_serial: bool
    candidates: tuple[Candidate, ...]


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def parse_playlist(payload: Any) -> Playlist:
    if not isinstance(payload, dict):
        raise ParseFailure("Unexpected playlist shape", str(payload))

    candidates: list[Candidate] = []
    for item in payload.get("items") or []:
        if not isinstance(item, dict):
            continue
        video_id = item.get("vkId") or item.get("id")
        if not video_id:
            continue
        candidates.append(
            Candidate(
                video_id=str(video_id),
                season=_as_int(item.get("season")),
                episode=_as_int(item.get("episode")),
                voice_studio=str(item.get("voiceStudio") or ""),
                voice_type=str(item.get("voiceType") or ""),
            )
        )
    return Playlist(
        is_serial=bool(payload.get("isSerial")), candidates=tuple(candidates)
    )


def select_candidates(
    playlist: Playlist, ref: ContentRef, limit: int
) -> list[Candidate]:
    """Candidates for *ref*, capped at *limit*."""
    if playlist.is_serial:
        if not ref.has_episode:
            raise MissingParameter("Series detected. Specify season and episode")
        selected = [
            c
            for c in playlist.candidates
            if c.season == ref.season and c.episode == ref.episode
        ]
        if not selected:
            raise NotFound(f"Episode S{ref.season}E{ref.episode} not found")
    else:
        selected = list(playlist.candidates)
        if not selected:
            raise NotFound("No items found in playlist")
    return selected[:limit]


def _pick(sources: dict[str, Any], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = sources.get(name)
        if isinstance(value, str) and value:
            return value
    return None


def _label(quality: str, voice: str) -> str:
    return f"{quality} ({voice})" if voice else quality


def parse_video_sources(payload: Any, voice: str = "") -> list[StreamVariant]:
    """Variants of one ``/video`` answer: HLS, DASH, then progressive tiers."""
    if not isinstance(payload, dict):
        raise ParseFailure("Unexpected video response shape", str(payload))
    sources = payload.get("sources")
    if not isinstance(sources, dict):
        sources = payload

    variants: list[StreamVariant] = []
    hls = _pick(sources, _HLS_FIELDS)
    if hls:
        variants.append(
            StreamVariant(url=hls, kind=StreamKind.HLS, label=_label("HLS", voice))
        )
    dash = _pick(sources, _DASH_FIELDS)
    if dash:
        variants.append(
            StreamVariant(url=dash, kind=StreamKind.DASH, label=_label("DASH", voice))
        )
    for field_name, quality in PROGRESSIVE_TIERS:
        url = _pick(sources, (field_name,))
        if url:
            variants.append(
                StreamVariant(
                    url=url, kind=StreamKind.PROGRESSIVE, label=_label(quality, voice)
                )
            )
    return variants


def playlist_series_index(playlist: Playlist) -> SeriesIndex | None:
    if not playlist.is_serial:
        return None
    seasons: dict[int, set[int]] = {}
    for c in playlist.candidates:
        if c.season is not None and c.episode is not None and c.season >= 1:
            seasons.setdefault(c.season, set()).add(c.episode)
    if not seasons:
        return None
    return {s: sorted(eps) for s, eps in sorted(seasons.items())}


class VideoHubSource(HttpxSourceBase):
    """CDN Video Hub: playlist lookup, then one request per candidate."""

    name = "videohub"

    def __init__(self, config: VideoHubConfig | None = None, **kwargs: Any) -> None:
        self._config = config or VideoHubConfig()
        super().__init__(self._config, self._config.api_host, **kwargs)

    async def search(self, query: str) -> SearchResult:
        return SearchResult(error=f"Search is not supported by {self.name}")

    async def _fetch_playlist(self, content_id: str) -> Playlist:
        payload = await self._fetch_json(
            "GET",
            f"{self.api_base}/playlist",
            params={
                "pub": self._config.pub,
                "aggr": self._config.aggr,
                "id": content_id,
            },
        )
        return parse_playlist(payload)

    async def _fetch_candidate(
        self, candidate: Candidate, sem: asyncio.Semaphore
    ) -> list[StreamVariant] | SourceError:
        async with sem:
            try:
                payload = await self._fetch_json(
                    "GET", f"{self.api_base}/video/{candidate.video_id}"
                )
                variants = parse_video_sources(payload, candidate.voice)
                if not variants:
                    raise ParseFailure(
                        f"No stream URLs for video {candidate.video_id}",
                        str(payload),
                    )
            except SourceError as exc:
                self._log.warning(
                    "videohub_candidate_failed",
                    video_id=candidate.video_id,
                    kind=exc.kind.value,
                    error=str(exc),
                )
                return exc
        return variants

    async def _fetch_player(self, ref: ContentRef) -> PlayerResult:
        playlist = await self._fetch_playlist(ref.content_id)
        candidates = select_candidates(playlist, ref, self._config.max_candidates)

        sem = asyncio.Semaphore(self._config.max_concurrent)
        outcomes = await asyncio.gather(
            *(self._fetch_candidate(c, sem) for c in candidates)
        )

        variants: list[StreamVariant] = []
        seen: set[str] = set()
        last_error: SourceError | None = None
        for outcome in outcomes:
            if isinstance(outcome, SourceError):
                last_error = outcome
                continue
            for v in outcome:
                if v.url not in seen:
                    seen.add(v.url)
                    variants.append(v)

        if not variants:
            if last_error is not None:
                raise last_error
            raise ParseFailure("No valid stream URLs found")

        self._log.debug(
            "videohub_candidates_resolved",
            total=len(candidates),
            failed=sum(isinstance(o, SourceError) for o in outcomes),
        )
        return PlayerResult.ok(variants, source=self.name)

    async def _fetch_series_index(self, content_id: str) -> SeriesIndex | None:
        return playlist_series_index(await self._fetch_playlist(content_id))

    async def list_voices(self, content_id: str) -> list[str] | None:
        """Distinct voice track names of *content_id*, in playlist order."""
        try:
            playlist = await self._fetch_playlist(content_id)
        except SourceError as exc:
            self._log.warning(
                "videohub_voices_failed", content_id=content_id, error=str(exc)
            )
            return None

        voices: list[str] = []
        for c in playlist.candidates:
            if c.voice and c.voice not in voices:
                voices.append(c.voice)
        return voices or None
