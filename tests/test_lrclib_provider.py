# tests/test_lrclib_provider.py
"""Test the LRCLIB lyric provider"""

import pytest

from lyric_fetcher.lyrics.exceptions import (
    DecodeError,
    InvalidTimeoutError,
    MissingMetadataError,
    NoMatchError,
    RateLimitedError,
    RequestConstructionError,
    RequestError,
    UnsupportedPlatformError,
)
from lyric_fetcher.lyrics.lrclib import LRCLibLyricProvider
from lyric_fetcher.lyrics.models import LyricLine, TrackReference

from fakes import json_response, text_response

RECORD = {
    "id": 3396226,
    "trackName": "Blue Monday",
    "artistName": "New Order",
    "albumName": "Power, Corruption & Lies",
    "duration": 449,
    "instrumental": False,
    "plainLyrics": "How does it feel\nTo treat me like you do",
    "syncedLyrics": "[00:49.10] How does it feel\n[00:53.55] To treat me like you do",
}


@pytest.fixture
def provider(settings, fake_http):
    return LRCLibLyricProvider(settings=settings, http_client=fake_http, platform_check=lambda: True)


class TestLRCLibFetch:
    """Test LRCLibLyricProvider.fetch_lyrics()"""

    @pytest.mark.asyncio
    async def test_fetch_lyrics(self, provider, fake_http, local_track):
        fake_http.add("/api/get", json_response(RECORD))

        result = await provider.fetch_lyrics(local_track)

        assert result.lines == (
            LyricLine(49_100, "How does it feel"),
            LyricLine(53_550, "To treat me like you do"),
        )
        assert result.color_hint is None

    @pytest.mark.asyncio
    async def test_query_is_percent_encoded(self, provider, fake_http, local_track):
        fake_http.add("/api/get", json_response(RECORD))

        await provider.fetch_lyrics(local_track)

        assert fake_http.urls() == [
            "https://lrclib.net/api/get?artist_name=New%20Order&track_name=Blue%20Monday"
            "&album_name=Power%2C%20Corruption%20%26%20Lies"
        ]

    @pytest.mark.asyncio
    async def test_fields_are_trimmed(self, provider, fake_http):
        fake_http.add("/api/get", json_response(RECORD))
        track = TrackReference("", "  Blue Monday ", " New Order", "Album  ")

        await provider.fetch_lyrics(track)

        assert "track_name=Blue%20Monday&album_name=Album" in fake_http.urls()[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("artist,album", [("", "Album"), ("   ", "Album"), ("Artist", None)])
    async def test_missing_metadata_without_io(self, provider, fake_http, artist, album):
        track = TrackReference("id", "Song", artist, album)

        with pytest.raises(MissingMetadataError) as exc_info:
            await provider.fetch_lyrics(track)

        assert exc_info.value.kind == "missing_metadata"
        assert fake_http.requests == []

    @pytest.mark.asyncio
    async def test_invalid_timeout_without_io(self, provider, fake_http, local_track):
        with pytest.raises(InvalidTimeoutError):
            await provider.fetch_lyrics(local_track, timeout=-1)
        assert fake_http.requests == []

    @pytest.mark.asyncio
    async def test_unsupported_platform_without_io(self, settings, fake_http, local_track):
        provider = LRCLibLyricProvider(settings=settings, http_client=fake_http, platform_check=lambda: False)

        with pytest.raises(UnsupportedPlatformError):
            await provider.fetch_lyrics(local_track)
        assert fake_http.requests == []

    @pytest.mark.asyncio
    async def test_instrumental_is_empty(self, provider, fake_http, local_track):
        fake_http.add("/api/get", json_response(dict(RECORD, instrumental=True)))
        assert (await provider.fetch_lyrics(local_track)).is_empty

    @pytest.mark.asyncio
    async def test_missing_synced_lyrics_is_empty(self, provider, fake_http, local_track):
        fake_http.add("/api/get", json_response(dict(RECORD, syncedLyrics=None)))
        assert (await provider.fetch_lyrics(local_track)).is_empty

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (404, NoMatchError),
        (429, RateLimitedError),
        (500, RequestError),
    ])
    async def test_status_mapping(self, provider, fake_http, local_track, status, error):
        fake_http.add("/api/get", json_response({"message": "nope"}, status=status))

        with pytest.raises(error) as exc_info:
            await provider.fetch_lyrics(local_track)
        assert exc_info.value.details["status"] == status

    @pytest.mark.asyncio
    async def test_malformed_json(self, provider, fake_http, local_track):
        fake_http.add("/api/get", text_response("<html>oops</html>"))

        with pytest.raises(DecodeError):
            await provider.fetch_lyrics(local_track)

    def test_relative_base_url_rejected(self, settings, fake_http):
        settings.lrclib.base_url = "lrclib.net"
        provider = LRCLibLyricProvider(settings=settings, http_client=fake_http)

        with pytest.raises(RequestConstructionError):
            provider.build_url("/api/get", [("track_name", "x")])


class TestLRCLibSearch:
    """Test LRCLibLyricProvider.search()"""

    @pytest.mark.asyncio
    async def test_search(self, provider, fake_http):
        other = dict(RECORD, trackName="Blue Monday '88", syncedLyrics=None)
        fake_http.add("/api/search", json_response([RECORD, other, "junk"]))

        results = await provider.search("Blue Monday", "New Order")

        assert [song.song_name for song in results] == ["Blue Monday", "Blue Monday '88"]
        assert results[0].source == "LRCLIB"
        assert len(results[0].lines) == 2
        assert results[1].lines == ()
        assert fake_http.urls()[0] == (
            "https://lrclib.net/api/search?track_name=Blue%20Monday&artist_name=New%20Order"
        )

    @pytest.mark.asyncio
    async def test_search_requires_names(self, provider, fake_http):
        with pytest.raises(MissingMetadataError):
            await provider.search("Blue Monday", " ")
        assert fake_http.requests == []

    @pytest.mark.asyncio
    async def test_search_unexpected_payload(self, provider, fake_http):
        fake_http.add("/api/search", json_response({"not": "a list"}))

        with pytest.raises(DecodeError):
            await provider.search("Blue Monday", "New Order")
