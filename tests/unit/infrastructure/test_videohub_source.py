"""Tests for VideoHubSource (playlist + per-candidate video lookups)."""

from __future__ import annotations

import pytest
import respx

from playerscout.domain.entities import ContentRef, ErrorKind, MediaType, StreamKind
from playerscout.infrastructure.config import VideoHubConfig
from playerscout.infrastructure.sources import VideoHubSource
from playerscout.infrastructure.sources.videohub import (
    Candidate,
    parse_playlist,
    parse_video_sources,
)

_API = "https://plapi.cdnvideohub.com/api/v1/player/sv"
_PLAYLIST_URL = f"{_API}/playlist"

_MOVIE_PLAYLIST = {
    "isSerial": False,
    "items": [
        {"vkId": "v1", "voiceStudio": "Jaskier", "voiceType": "dub"},
        {"vkId": "v2", "voiceStudio": "", "voiceType": "Original"},
        {"id": "v3", "voiceStudio": "LostFilm"},
    ],
}

_SERIAL_PLAYLIST = {
    "isSerial": True,
    "items": [
        {"vkId": "s1e1", "season": 1, "episode": 1, "voiceStudio": "A"},
        {"vkId": "s1e2a", "season": 1, "episode": 2, "voiceStudio": "A"},
        {"vkId": "s1e2b", "season": "1", "episode": "2", "voiceStudio": "B"},
        {"vkId": "s2e1", "season": 2, "episode": 1, "voiceStudio": "A"},
    ],
}


def _video(name: str) -> dict:
    return {
        "sources": {
            "hlsUrl": f"https://cdn.test/{name}.m3u8",
            "mpegHighUrl": f"https://cdn.test/{name}-720.mp4",
        }
    }


@pytest.fixture()
def source(videohub_config: VideoHubConfig) -> VideoHubSource:
    return VideoHubSource(videohub_config)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestParsing:
    def test_playlist_ids_and_voices(self) -> None:
        playlist = parse_playlist(_MOVIE_PLAYLIST)
        assert playlist.is_serial is False
        assert [c.video_id for c in playlist.candidates] == ["v1", "v2", "v3"]
        assert [c.voice for c in playlist.candidates] == [
            "Jaskier",
            "Original",
            "LostFilm",
        ]

    def test_video_sources_order(self) -> None:
        payload = {
            "sources": {
                "mpegLowUrl": "https://cdn.test/low.mp4",
                "dashUrl": "https://cdn.test/x.mpd",
                "mpegFullHdUrl": "https://cdn.test/1080.mp4",
                "hlsUrl": "https://cdn.test/x.m3u8",
            }
        }
        variants = parse_video_sources(payload, "Jaskier")
        assert [v.kind for v in variants] == [
            StreamKind.HLS,
            StreamKind.DASH,
            StreamKind.PROGRESSIVE,
            StreamKind.PROGRESSIVE,
        ]
        assert [v.label for v in variants] == [
            "HLS (Jaskier)",
            "DASH (Jaskier)",
            "Full HD (Jaskier)",
            "Low (Jaskier)",
        ]

    def test_flat_body(self) -> None:
        variants = parse_video_sources({"hls": "https://cdn.test/flat.m3u8"})
        assert variants[0].url == "https://cdn.test/flat.m3u8"
        assert variants[0].label == "HLS"

    def test_candidate_voice_fallback(self) -> None:
        assert Candidate("x", voice_type="dub").voice == "dub"


# ---------------------------------------------------------------------------
# Player
# ---------------------------------------------------------------------------


class TestResolveMovie:
    @respx.mock
    async def test_playlist_params(self, source: VideoHubSource) -> None:
        route = respx.get(_PLAYLIST_URL).respond(
            200, json={"isSerial": False, "items": [{"vkId": "v1"}]}
        )
        respx.get(f"{_API}/video/v1").respond(200, json=_video("v1"))

        result = await source.resolve_player(ContentRef("videohub", "447301"))

        assert result.success is True
        params = route.calls.last.request.url.params
        assert params["pub"] == "12"
        assert params["aggr"] == "kp"
        assert params["id"] == "447301"
        await source.cleanup()

    @respx.mock
    async def test_all_candidates_merged(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_MOVIE_PLAYLIST)
        for name in ("v1", "v2", "v3"):
            respx.get(f"{_API}/video/{name}").respond(200, json=_video(name))

        result = await source.resolve_player(ContentRef("videohub", "447301"))

        assert result.primary_url == "https://cdn.test/v1.m3u8"
        assert len(result.variants) == 6
        assert result.variants[1].label == "HD (Jaskier)"
        await source.cleanup()

    @respx.mock
    async def test_failing_candidate_skipped(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_MOVIE_PLAYLIST)
        respx.get(f"{_API}/video/v1").respond(500)
        respx.get(f"{_API}/video/v2").respond(200, json={"sources": {}})
        respx.get(f"{_API}/video/v3").respond(200, json=_video("v3"))

        result = await source.resolve_player(ContentRef("videohub", "447301"))

        assert result.success is True
        assert result.primary_url == "https://cdn.test/v3.m3u8"
        await source.cleanup()

    @respx.mock
    async def test_all_candidates_fail(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_MOVIE_PLAYLIST)
        respx.get(url__startswith=f"{_API}/video/").respond(502)

        result = await source.resolve_player(ContentRef("videohub", "447301"))

        assert result.success is False
        assert result.error_kind is ErrorKind.NETWORK_FAILURE
        await source.cleanup()

    @respx.mock
    async def test_duplicate_urls_dropped(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(
            200, json={"items": [{"vkId": "a"}, {"vkId": "b"}]}
        )
        respx.get(f"{_API}/video/a").respond(200, json=_video("same"))
        respx.get(f"{_API}/video/b").respond(200, json=_video("same"))

        result = await source.resolve_player(ContentRef("videohub", "1"))

        assert len(result.variants) == 2
        await source.cleanup()

    @respx.mock
    async def test_empty_playlist(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json={"isSerial": False, "items": []})

        result = await source.resolve_player(ContentRef("videohub", "1"))

        assert result.error_kind is ErrorKind.NOT_FOUND
        assert result.error == "No items found in playlist"
        await source.cleanup()

    @respx.mock
    async def test_candidate_cap(self) -> None:
        source = VideoHubSource(VideoHubConfig(max_candidates=2))
        respx.get(_PLAYLIST_URL).respond(200, json=_MOVIE_PLAYLIST)
        video = respx.get(url__startswith=f"{_API}/video/").respond(
            200, json={"hls": "https://cdn.test/x.m3u8"}
        )

        await source.resolve_player(ContentRef("videohub", "1"))

        assert video.call_count == 2
        await source.cleanup()


class TestResolveSerial:
    @respx.mock
    async def test_requires_episode(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_SERIAL_PLAYLIST)

        result = await source.resolve_player(ContentRef("videohub", "464963"))

        assert result.error_kind is ErrorKind.MISSING_PARAMETER
        await source.cleanup()

    @respx.mock
    async def test_episode_voices(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_SERIAL_PLAYLIST)
        a = respx.get(f"{_API}/video/s1e2a").respond(200, json=_video("a"))
        b = respx.get(f"{_API}/video/s1e2b").respond(200, json=_video("b"))
        ref = ContentRef("videohub", "464963", MediaType.SERIES, season=1, episode=2)

        result = await source.resolve_player(ref)

        assert a.called and b.called
        assert [v.label for v in result.variants] == [
            "HLS (A)",
            "HD (A)",
            "HLS (B)",
            "HD (B)",
        ]
        await source.cleanup()

    @respx.mock
    async def test_unknown_episode(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_SERIAL_PLAYLIST)
        ref = ContentRef("videohub", "464963", MediaType.SERIES, season=3, episode=1)

        result = await source.resolve_player(ref)

        assert result.error_kind is ErrorKind.NOT_FOUND
        assert result.error == "Episode S3E1 not found"
        await source.cleanup()


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class TestMetadata:
    @respx.mock
    async def test_series_index(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_SERIAL_PLAYLIST)
        assert await source.resolve_series_index("464963") == {1: [1, 2], 2: [1]}
        await source.cleanup()

    @respx.mock
    async def test_movie_has_no_index(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_MOVIE_PLAYLIST)
        assert await source.resolve_series_index("447301") is None
        await source.cleanup()

    @respx.mock
    async def test_list_voices(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(200, json=_SERIAL_PLAYLIST)
        assert await source.list_voices("464963") == ["A", "B"]
        await source.cleanup()

    @respx.mock
    async def test_list_voices_on_error(self, source: VideoHubSource) -> None:
        respx.get(_PLAYLIST_URL).respond(503)
        assert await source.list_voices("464963") is None
        await source.cleanup()

    async def test_search_unsupported(self, source: VideoHubSource) -> None:
        result = await source.search("anything")
        assert result.success is False
        assert result.error == "Search is not supported by videohub"
