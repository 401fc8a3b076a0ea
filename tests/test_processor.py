# tests/test_processor.py
"""Test fetch orchestration across providers"""

import asyncio
from unittest.mock import patch

import pytest

from lyric_fetcher.lyrics.exceptions import (
    ConfigError,
    LocalTrackUnsupportedError,
    NoMatchError,
    ProviderTimeoutError,
    RateLimitedError,
)
from lyric_fetcher.lyrics.lrclib import LRCLibLyricProvider
from lyric_fetcher.lyrics.models import AttemptOutcome, LyricResult, SongResult
from lyric_fetcher.lyrics.netease import NetEaseLyricProvider
from lyric_fetcher.lyrics.processor import LyricsProcessor, get_lyrics_processor, reset_lyrics_processor
from lyric_fetcher.lyrics.spotify import AccessToken, SpotifyLyricProvider

from fakes import FakeHttpClient, StubProvider, json_response, make_result, text_response


def stubs(settings, *configs):
    """Build stub providers ranked in the given order"""
    return [StubProvider(name, rank, settings, **kwargs) for rank, (name, kwargs) in enumerate(configs)]


class TestFetchAll:
    """Test LyricsProcessor.fetch_all()"""

    @pytest.mark.asyncio
    async def test_first_success_wins(self, settings, spotify_track):
        spotify, lrclib, netease = stubs(
            settings,
            ("Spotify", {'result': make_result("a", "b")}),
            ("LRCLIB", {'result': make_result("c", "d")}),
            ("NetEase", {'result': make_result("e", "f")}),
        )
        processor = LyricsProcessor(providers=[spotify, lrclib, netease], settings=settings)

        result = await processor.fetch_all(spotify_track)

        assert [line.words for line in result.lines] == ["a", "b"]
        assert (spotify.calls, lrclib.calls, netease.calls) == (1, 0, 0)

    @pytest.mark.asyncio
    async def test_providers_ordered_by_rank(self, settings, spotify_track):
        spotify, lrclib = stubs(
            settings,
            ("Spotify", {'result': make_result("spotify", "lyrics")}),
            ("LRCLIB", {'result': make_result("lrclib", "lyrics")}),
        )
        processor = LyricsProcessor(providers=[lrclib, spotify], settings=settings)

        result = await processor.fetch_all(spotify_track)

        assert result.lines[0].words == "spotify"
        assert lrclib.calls == 0

    @pytest.mark.asyncio
    async def test_errors_and_empties_fall_through(self, settings, local_track):
        spotify, lrclib, netease = stubs(
            settings,
            ("Spotify", {'error': LocalTrackUnsupportedError("local", provider="Spotify")}),
            ("LRCLIB", {'result': LyricResult.empty()}),
            ("NetEase", {'result': make_result("found", "it")}),
        )
        processor = LyricsProcessor(providers=[spotify, lrclib, netease], settings=settings)

        result = await processor.fetch_all(local_track)

        assert result.lines[0].words == "found"
        assert [(attempt.provider.name, attempt.outcome, attempt.error_kind)
                for attempt in processor.last_attempts] == [
            ("Spotify", AttemptOutcome.ERROR, "local_track"),
            ("LRCLIB", AttemptOutcome.EMPTY, None),
            ("NetEase", AttemptOutcome.SUCCESS, None),
        ]

    @pytest.mark.asyncio
    async def test_rate_limit_falls_through(self, settings, spotify_track):
        spotify, lrclib = stubs(
            settings,
            ("Spotify", {'error': RateLimitedError("slow down", provider="Spotify")}),
            ("LRCLIB", {'result': make_result("x", "y")}),
        )
        processor = LyricsProcessor(providers=[spotify, lrclib], settings=settings)

        result = await processor.fetch_all(spotify_track)

        assert not result.is_empty
        assert lrclib.calls == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_through(self, settings, spotify_track):
        spotify, lrclib = stubs(
            settings,
            ("Spotify", {'error': RuntimeError("bug")}),
            ("LRCLIB", {'result': make_result("x", "y")}),
        )
        processor = LyricsProcessor(providers=[spotify, lrclib], settings=settings)

        assert not (await processor.fetch_all(spotify_track)).is_empty
        assert processor.last_attempts[0].error_kind == "RuntimeError"

    @pytest.mark.asyncio
    async def test_exhaustion_returns_empty(self, settings, spotify_track):
        providers = stubs(
            settings,
            ("Spotify", {'error': ProviderTimeoutError("late", provider="Spotify")}),
            ("LRCLIB", {'error': NoMatchError("none", provider="LRCLIB")}),
            ("NetEase", {}),
        )
        processor = LyricsProcessor(providers=providers, settings=settings)

        result = await processor.fetch_all(spotify_track)

        assert result == LyricResult.empty()
        assert all(provider.calls == 1 for provider in providers)

    @pytest.mark.asyncio
    async def test_cancellation_stops_the_walk(self, settings, spotify_track):
        spotify, lrclib = stubs(
            settings,
            ("Spotify", {'delay': 10}),
            ("LRCLIB", {'result': make_result("x", "y")}),
        )
        processor = LyricsProcessor(providers=[spotify, lrclib], settings=settings)

        task = asyncio.ensure_future(processor.fetch_all(spotify_track))
        while spotify.calls == 0:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert lrclib.calls == 0

    @pytest.mark.asyncio
    async def test_stats(self, settings, spotify_track):
        spotify, lrclib = stubs(
            settings,
            ("Spotify", {'error': NoMatchError("none", provider="Spotify")}),
            ("LRCLIB", {'result': make_result("x", "y")}),
        )
        processor = LyricsProcessor(providers=[spotify, lrclib], settings=settings)

        await processor.fetch_all(spotify_track)
        lrclib.result = LyricResult.empty()
        await processor.fetch_all(spotify_track)

        stats = processor.get_stats()
        assert stats['total_fetches'] == 2
        assert stats['successful_fetches'] == 1
        assert stats['failed_fetches'] == 1
        assert stats['success_rate'] == "50.0%"
        assert stats['provider_usage']['Spotify'] == {'success': 0, 'empty': 0, 'error': 2}
        assert stats['provider_usage']['LRCLIB'] == {'success': 1, 'empty': 1, 'error': 0}
        assert stats['configuration']['provider_order'] == ["Spotify", "LRCLIB"]

        processor.reset_stats()
        assert processor.get_stats()['total_fetches'] == 0


class TestSearchAll:
    """Test LyricsProcessor.search_all()"""

    @pytest.mark.asyncio
    async def test_collects_in_search_order(self, settings):
        spotify_song = SongResult("Spotify", "Song", "Album", "Artist")
        netease_song = SongResult("NetEase", "Song", "Album", "Artist")
        spotify, lrclib, netease = stubs(
            settings,
            ("Spotify", {'search_results': [spotify_song]}),
            ("LRCLIB", {'search_error': NoMatchError("down", provider="LRCLIB")}),
            ("NetEase", {'search_results': [netease_song]}),
        )
        processor = LyricsProcessor(
            providers=[spotify, lrclib, netease],
            search_providers=[spotify, netease, lrclib],
            settings=settings,
        )

        results = await processor.search_all("Song", "Artist")

        assert results == [spotify_song, netease_song]
        assert lrclib.search_calls == 1


class TestProcessorConfiguration:
    """Test providers built from settings"""

    def test_default_orders(self, settings):
        processor = LyricsProcessor(settings=settings)

        assert [type(provider) for provider in processor.providers] == [
            SpotifyLyricProvider, LRCLibLyricProvider, NetEaseLyricProvider
        ]
        assert [provider.name for provider in processor.search_providers] == ["Spotify", "NetEase", "LRCLIB"]
        assert [provider.identity.priority_rank for provider in processor.providers] == [0, 1, 2]
        # Search reuses the fetch instances
        assert processor.search_providers[0] is processor.providers[0]

    def test_custom_order_ranks(self, settings):
        settings.lyrics.provider_order = ["netease", "lrclib"]
        processor = LyricsProcessor(settings=settings)

        assert [(provider.name, provider.identity.priority_rank) for provider in processor.providers] == [
            ("NetEase", 0), ("LRCLIB", 1)
        ]
        # Class defaults are untouched
        assert NetEaseLyricProvider.identity.priority_rank == 2

    def test_unknown_provider(self, settings):
        settings.lyrics.provider_order = ["spotify", "genius"]

        with pytest.raises(ConfigError):
            LyricsProcessor(settings=settings)

    @pytest.mark.asyncio
    async def test_close_closes_each_provider_once(self, settings):
        providers = stubs(settings, ("Spotify", {}), ("LRCLIB", {}))
        processor = LyricsProcessor(providers=providers, settings=settings)

        async with processor:
            pass

        assert all(provider.http.closed for provider in providers)


class TestGlobalProcessor:
    """Test the shared processor instance"""

    def test_singleton(self):
        reset_lyrics_processor()
        try:
            with patch('lyric_fetcher.lyrics.processor.LyricsProcessor') as mock_processor:
                first = get_lyrics_processor()
                assert get_lyrics_processor() is first
                mock_processor.assert_called_once_with()

                reset_lyrics_processor()
                get_lyrics_processor()
                assert mock_processor.call_count == 2
        finally:
            reset_lyrics_processor()


class TestProviderFallthrough:
    """End-to-end walks over real providers with recorded HTTP traffic"""

    @pytest.mark.asyncio
    async def test_spotify_rate_limit_falls_back_to_lrclib(self, settings, spotify_track):
        spotify_http = FakeHttpClient()
        spotify_http.add("color-lyrics", text_response("too many requests"))
        lrclib_http = FakeHttpClient()
        lrclib_http.add("/api/get", json_response({
            "trackName": spotify_track.track_name,
            "artistName": spotify_track.artist_name,
            "albumName": spotify_track.album_name,
            "instrumental": False,
            "syncedLyrics": "[00:18.80]We're no strangers to love\n[00:22.90]You know the rules and so do I",
        }))

        spotify = SpotifyLyricProvider(settings=settings, http_client=spotify_http, platform_check=lambda: True)
        spotify._access_token = AccessToken("cached-token", 2 ** 62)
        lrclib = LRCLibLyricProvider(settings=settings, http_client=lrclib_http, platform_check=lambda: True)
        processor = LyricsProcessor(providers=[spotify, lrclib], settings=settings)

        result = await processor.fetch_all(spotify_track)

        assert result.lines[0].words == "We're no strangers to love"
        assert [(attempt.provider.name, attempt.error_kind) for attempt in processor.last_attempts] == [
            ("Spotify", "rate_limited"),
            ("LRCLIB", None),
        ]
        assert spotify_http.count("color-lyrics") == 1
        assert lrclib_http.count("/api/get") == 1
