"""Token-gated JSON API backend (Collaps-style CDN).

Search and series metadata are plain JSON endpoints.  Streams are not
offered by the API; they are scraped from the inline script of the
embed page (``hls:"..."`` / ``dash:"..."`` literals, plus a
``seasons:[...]`` array for series).
"""

from __future__ import annotations

import json
import re
from typing import Any

from playerscout.domain.entities.media import (
    ContentRef,
    MediaType,
    PlayerResult,
    SearchHit,
    SeriesIndex,
    StreamKind,
    StreamVariant,
)
from playerscout.domain.exceptions import (
    MissingParameter,
    NotFound,
    ParseFailure,
)
from playerscout.infrastructure.config.schema import CollapsConfig
from playerscout.infrastructure.decoding import classify_stream_url

from .base import HttpxSourceBase

DEFAULT_VOICE = "Default"

# Tried in order, first match wins.
_HLS_PATTERNS = (
    re.compile(r'hls:\s+"(https?://[^"]+\.m3u[^"]+)'),
    re.compile(r'hls:\s*"([^"]+)'),
    re.compile(r"""["']hls["']:\s*["']([^"']+)"""),
)
_DASH_PATTERNS = (
    re.compile(r'dasha?:\s+"(https?://[^"]+\.mp[^"]+)'),
    re.compile(r'dasha?:\s*"([^"]+)'),
    re.compile(r"""["']dasha?["']:\s*["']([^"']+)"""),
)
_AUDIO_RE = re.compile(r'audio:\s*\{\s*"names"\s*:\s*\["([^"]+)')
_ANY_STREAM_RE = re.compile(r"""(https?://[^"'\s]+\.(?:m3u8|mp4|mpd))""")
_SEASONS_RE = re.compile(r"seasons\s*:\s*\[")

_SERIES_TYPES = frozenset({"series", "serial", "tv", "anime-serial", "cartoon-serial"})


def embed_path(content_id: str) -> str:
    """Pick the embed route from the id shape (IMDb, Kinopoisk or own id)."""
    if content_id.startswith("tt"):
        return f"/embed/imdb/{content_id}"
    if content_id.isdigit() and len(content_id) < 10:
        return f"/embed/kp/{content_id}"
    return f"/embed/movie/{content_id}"


def unescape_url(value: str) -> str:
    return value.replace("\\u0026", "&").replace("\\", "")


def _first_match(patterns: tuple[re.Pattern[str], ...], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return unescape_url(match.group(1))
    return None


def extract_seasons(html: str) -> list[dict[str, Any]] | None:
    """Return the inline ``seasons:[...]`` array, or None for movies."""
    match = _SEASONS_RE.search(html)
    if match is None:
        return None

    start = match.end() - 1
    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(html)):
        char = html[pos]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                literal = html[start : pos + 1]
                try:
                    seasons = json.loads(literal)
                except ValueError as exc:
                    raise ParseFailure("Malformed seasons array", literal) from exc
                if not isinstance(seasons, list):
                    raise ParseFailure("Malformed seasons array", literal)
                return [s for s in seasons if isinstance(s, dict)]

    raise ParseFailure("Unterminated seasons array", html[start:])


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def _season_number(season: dict[str, Any]) -> int | None:
    return _as_int(season.get("season", season.get("number")))


def _episode_number(episode: Any) -> int | None:
    if isinstance(episode, dict):
        return _as_int(episode.get("episode", episode.get("number")))
    return _as_int(episode)


def select_episode(
    seasons: list[dict[str, Any]], season: int, episode: int
) -> dict[str, Any]:
    for entry in seasons:
        if _season_number(entry) != season:
            continue
        for ep in entry.get("episodes") or []:
            if isinstance(ep, dict) and _episode_number(ep) == episode:
                return ep
    raise NotFound(f"Episode S{season}E{episode} not found")


def _voice_name(audio: Any) -> str:
    if isinstance(audio, dict):
        names = audio.get("names")
        if isinstance(names, list) and names and isinstance(names[0], str):
            return names[0]
    return DEFAULT_VOICE


def build_variants(
    hls: str | None,
    dash: str | None,
    voice: str,
    *,
    prefer_dash: bool,
    headers: dict[str, str],
) -> list[StreamVariant]:
    """HLS and DASH variants in preference order."""
    candidates = [(hls, StreamKind.HLS), (dash, StreamKind.DASH)]
    if prefer_dash:
        candidates.reverse()
    return [
        StreamVariant(url=url, kind=kind, label=voice, headers=dict(headers))
        for url, kind in candidates
        if url
    ]


def parse_movie_streams(
    html: str, *, prefer_dash: bool, headers: dict[str, str]
) -> list[StreamVariant]:
    voice_match = _AUDIO_RE.search(html)
    voice = voice_match.group(1) if voice_match else DEFAULT_VOICE
    variants = build_variants(
        _first_match(_HLS_PATTERNS, html),
        _first_match(_DASH_PATTERNS, html),
        voice,
        prefer_dash=prefer_dash,
        headers=headers,
    )
    if variants:
        return variants

    any_stream = _ANY_STREAM_RE.search(html)
    if any_stream is None:
        return []
    url = any_stream.group(1)
    return [
        StreamVariant(
            url=url, kind=classify_stream_url(url), label=voice, headers=dict(headers)
        )
    ]


def parse_episode_streams(
    episode: dict[str, Any], *, prefer_dash: bool, headers: dict[str, str]
) -> list[StreamVariant]:
    def _field(*names: str) -> str | None:
        for name in names:
            value = episode.get(name)
            if isinstance(value, str) and value:
                return unescape_url(value)
        return None

    return build_variants(
        _field("hls"),
        _field("dash", "dasha"),
        _voice_name(episode.get("audio")),
        prefer_dash=prefer_dash,
        headers=headers,
    )


def parse_search_payload(payload: Any, raw: str) -> list[SearchHit]:
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise ParseFailure("No results array in search response", raw)

    hits: list[SearchHit] = []
    for item in payload["results"]:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            continue
        kind = str(item.get("type") or "").lower()
        media_type = MediaType.SERIES if kind in _SERIES_TYPES else MediaType.MOVIE
        hits.append(
            SearchHit(
                id=str(item["id"]),
                title=str(item.get("name") or ""),
                media_type=media_type,
                year=_as_int(item.get("year")) or None,
                poster_url=item.get("poster") or None,
            )
        )
    return hits


def parse_franchise_seasons(payload: Any) -> SeriesIndex | None:
    if not isinstance(payload, dict) or not isinstance(payload.get("seasons"), list):
        return None

    index: SeriesIndex = {}
    for season in payload["seasons"]:
        if not isinstance(season, dict):
            continue
        number = _season_number(season)
        if number is None or number < 1:
            continue
        episodes = {
            n
            for n in (_episode_number(ep) for ep in season.get("episodes") or [])
            if n is not None
        }
        if episodes:
            index[number] = sorted(episodes | set(index.get(number, ())))
    return dict(sorted(index.items())) or None


class CollapsSource(HttpxSourceBase):
    """Collaps-style CDN: JSON search, embed-page stream scraping."""

    name = "collaps"

    def __init__(self, config: CollapsConfig | None = None, **kwargs: Any) -> None:
        self._config = config or CollapsConfig()
        super().__init__(self._config, self._config.api_host, **kwargs)

    @property
    def _prefer_dash(self) -> bool:
        return self._config.two and self._config.use_dash

    @property
    def _stream_headers(self) -> dict[str, str]:
        return {
            "Origin": self._config.api_host,
            "Referer": f"{self._config.api_host}/",
        }

    async def _search(self, query: str) -> list[SearchHit]:
        raw = await self._fetch_text(
            "GET",
            f"{self.api_base}/list",
            params={"token": self._config.token, "name": query},
        )
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise ParseFailure("Invalid JSON from collaps", raw) from exc
        return parse_search_payload(payload, raw)

    async def _fetch_player(self, ref: ContentRef) -> PlayerResult:
        html = await self._fetch_text("GET", self.api_base + embed_path(ref.content_id))

        seasons = extract_seasons(html)
        if seasons is not None:
            if not ref.has_episode:
                raise MissingParameter(
                    "Series detected. Specify season and episode"
                )
            episode = select_episode(
                seasons, ref.season, ref.episode  # type: ignore[arg-type]
            )
            variants = parse_episode_streams(
                episode, prefer_dash=self._prefer_dash, headers=self._stream_headers
            )
        elif ref.is_series:
            raise NotFound(f"No seasons in embed page for {ref.content_id}")
        else:
            variants = parse_movie_streams(
                html, prefer_dash=self._prefer_dash, headers=self._stream_headers
            )

        if not variants:
            raise ParseFailure("No valid stream found in embed content", html)
        return PlayerResult.ok(variants, source=self.name)

    async def _fetch_series_index(self, content_id: str) -> SeriesIndex | None:
        id_param = "imdb_id" if content_id.startswith("tt") else "kinopoisk_id"
        payload = await self._fetch_json(
            "GET",
            f"{self.api_base}/franchise/details",
            params={"token": self._config.token, id_param: content_id},
        )
        return parse_franchise_seasons(payload)
