"""Scraped-HTML backend (HDRezka-style site).

Search is a scraped HTML fragment; streams come from an AJAX endpoint
returning JSON whose ``url`` field is an obfuscated payload (see
:mod:`playerscout.infrastructure.decoding`).

Content ids are either the numeric id or the page path returned by
search (``films/fiction/2259-nachalo-2010.html``); the numeric part is
extracted for the AJAX call.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any

from playerscout.domain.entities.media import (
    ContentRef,
    MediaType,
    PlayerResult,
    SearchHit,
    SeriesIndex,
    StreamVariant,
)
from playerscout.domain.exceptions import (
    ParseFailure,
    UpstreamBlocked,
    UpstreamReportedError,
)
from playerscout.infrastructure.config.schema import RezkaConfig
from playerscout.infrastructure.decoding import (
    classify_stream_url,
    decode,
    extract_variants,
)

from .base import HttpxSourceBase

HLS_SUFFIX = ":hls:manifest.m3u8"

_SEARCH_ROW_SPLIT = '"b-content__inline_item"'
_SEARCH_ROW_RE = re.compile(
    r'href="https?://[^/]+/([^"]+)">([^<]+)</a> ?<div>([0-9]{4})'
)
_POSTER_RE = re.compile(r'<img src="([^"]+)"')
_NORMALIZE_RE = re.compile(r"[^a-zа-яё0-9]")

_EPISODE_ATTR_RE = re.compile(
    r'data-season_id="(\d+)"\s+data-episode_id="(\d+)"'
)
_EPISODE_LINK_RE = re.compile(r"[?&]s=(\d+)&(?:amp;)?e=(\d+)")
_NUMERIC_ID_RE = re.compile(r"(?:^|/)(\d+)-[^/]*$")
_QUALITY_RE = re.compile(r"(\d{3,4})p")
_K_QUALITY_RE = re.compile(r"(\d)K\b", re.IGNORECASE)
_K_HEIGHTS = {2: 1440, 4: 2160, 8: 4320}
_ANY_URL_RE = re.compile(r"https?://[^\[\n\r, ]+")

_SEARCH_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def normalize_title(value: str) -> str:
    """Lowercase and keep only latin/cyrillic letters and digits."""
    return _NORMALIZE_RE.sub("", value.lower())


def parse_block_message(html: str) -> str | None:
    """Return a block description if *html* is the access-error page."""
    if 'class="error-code"' not in html:
        return None
    if "ошибка доступа" not in html.lower():
        return None
    if "(105)" in html or ">105<" in html or "(403)" in html:
        return "Access error (105): IP address blocked"
    if "(101)" in html or ">101<" in html:
        return "Access error (101): account blocked"
    return "Access error"


def parse_search_results(html: str, query: str) -> list[SearchHit]:
    hits: list[SearchHit] = []
    wanted = normalize_title(query)

    for row in html.split(_SEARCH_ROW_SPLIT)[1:]:
        match = _SEARCH_ROW_RE.search(row)
        if match is None:
            continue
        href, title, year = match.group(1), match.group(2).strip(), match.group(3)
        if not href or not title:
            continue

        normalized = normalize_title(title)
        if wanted not in normalized and normalized not in wanted:
            continue

        poster = _POSTER_RE.search(row)
        is_series = "series" in row or "сериал" in row
        hits.append(
            SearchHit(
                id=href,
                title=title,
                media_type=MediaType.SERIES if is_series else MediaType.MOVIE,
                year=int(year),
                poster_url=poster.group(1) if poster else None,
            )
        )
    return hits


def _quality_rank(label: str) -> int:
    match = _QUALITY_RE.search(label)
    if match:
        rank = int(match.group(1)) * 10
    else:
        k_match = _K_QUALITY_RE.search(label)
        rank = _K_HEIGHTS.get(int(k_match.group(1)), 0) * 10 if k_match else 0
    if "ultra" in label.lower():
        rank += 1
    return rank


def _apply_hls_mode(url: str, hls: bool) -> str:
    if hls:
        return url if url.endswith(".m3u8") else url + HLS_SUFFIX
    return url.replace(HLS_SUFFIX, "")


def parse_stream_links(decoded: str, *, hls: bool) -> list[StreamVariant]:
    """Turn the decoded payload into variants, highest quality first."""
    variants = [
        v for v in extract_variants(decoded) if ".mp4" in v.url or ".m3u8" in v.url
    ]
    if not variants:
        match = _ANY_URL_RE.search(decoded)
        if match is None:
            return []
        url = _apply_hls_mode(match.group(0), hls)
        return [StreamVariant(url=url, kind=classify_stream_url(url), label="auto")]

    variants.sort(key=lambda v: _quality_rank(v.label), reverse=True)
    out: list[StreamVariant] = []
    for v in variants:
        url = _apply_hls_mode(v.url, hls)
        out.append(StreamVariant(url=url, kind=classify_stream_url(url), label=v.label))
    return out


def parse_player_response(
    payload: Any, raw: str, *, hls: bool
) -> list[StreamVariant]:
    """Extract variants from the ``get_cdn_series`` JSON answer."""
    if not isinstance(payload, dict):
        raise ParseFailure("Unexpected response shape", raw)

    error = payload.get("error")
    if error:
        raise UpstreamReportedError(f"Rezka API error: {error}")
    if payload.get("success") is False:
        raise UpstreamReportedError(
            f"Rezka API error: {payload.get('message') or 'request rejected'}"
        )

    url = payload.get("url")
    if not url or str(url).lower() == "false":
        raise ParseFailure("No URL in response", raw)

    variants = parse_stream_links(decode(str(url)), hls=hls)
    if not variants:
        raise ParseFailure("No streams found in URL", str(url))
    return variants


def parse_series_index(html: str) -> SeriesIndex | None:
    seasons: dict[int, set[int]] = {}
    for regex in (_EPISODE_ATTR_RE, _EPISODE_LINK_RE):
        for match in regex.finditer(html):
            season, episode = int(match.group(1)), int(match.group(2))
            if season >= 1:
                seasons.setdefault(season, set()).add(episode)
    if not seasons:
        return None
    return {s: sorted(eps) for s, eps in sorted(seasons.items())}


def numeric_id(content_id: str) -> str:
    """Numeric site id from a bare id or a page path."""
    if content_id.isdigit():
        return content_id
    match = _NUMERIC_ID_RE.search(content_id.split("?", 1)[0])
    return match.group(1) if match else content_id


class RezkaSource(HttpxSourceBase):
    """HDRezka-style site: scraped search, AJAX stream endpoint."""

    name = "rezka"

    def __init__(self, config: RezkaConfig | None = None, **kwargs: Any) -> None:
        self._config = config or RezkaConfig()
        super().__init__(self._config, self._config.host, **kwargs)

    def _detect_block(self, body: str) -> None:
        message = parse_block_message(body)
        if message is not None:
            raise UpstreamBlocked(message)
        super()._detect_block(body)

    def _identity_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._config.real_ip:
            headers["X-Real-IP"] = self._config.real_ip
            headers["X-Forwarded-For"] = self._config.real_ip
        if self._config.x_app:
            headers["X-App-Hdrezka-App"] = "1"
        return headers

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def _search(self, query: str) -> list[SearchHit]:
        html = await self._fetch_text(
            "GET",
            f"{self.api_base}/search/",
            params={"do": "search", "subaction": "search", "q": query},
            headers={
                **_SEARCH_HEADERS,
                "Referer": f"{self.api_base}/",
                **self._identity_headers(),
            },
        )
        return parse_search_results(html, query)

    # ------------------------------------------------------------------
    # Player
    # ------------------------------------------------------------------

    def _form_data(self, ref: ContentRef) -> dict[str, str]:
        data = {
            "id": numeric_id(ref.content_id),
            "translator_id": str(self._config.translator_id),
        }
        if ref.is_series:
            data.update(
                season=str(ref.season),
                episode=str(ref.episode),
                favs="",
                action="get_stream",
            )
        else:
            data.update(
                is_camrip="0",
                is_ads="0",
                is_director="0",
                favs="",
                action="get_movie",
            )
        return data

    async def _fetch_player(self, ref: ContentRef) -> PlayerResult:
        base = self.api_base
        raw = await self._fetch_text(
            "POST",
            f"{base}/ajax/get_cdn_series/",
            params={"t": str(int(time.time() * 1000))},
            data=self._form_data(ref),
            headers={
                "Accept": "application/json, text/javascript, */*; q=0.01",
                "Origin": base,
                "Referer": f"{base}/{ref.content_id}",
                "X-Requested-With": "XMLHttpRequest",
                **self._identity_headers(),
            },
        )
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise ParseFailure("Invalid JSON from rezka", raw) from exc

        variants = parse_player_response(payload, raw, hls=self._config.hls)
        return PlayerResult.ok(variants, source=self.name)

    # ------------------------------------------------------------------
    # Series index
    # ------------------------------------------------------------------

    async def _fetch_series_index(self, content_id: str) -> SeriesIndex | None:
        html = await self._fetch_text(
            "GET",
            f"{self.api_base}/{content_id}",
            headers=self._identity_headers(),
        )
        return parse_series_index(html)
