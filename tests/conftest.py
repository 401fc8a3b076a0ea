"""Test configuration and fixtures"""

import pytest

from lyric_fetcher.config.settings import Settings
from lyric_fetcher.lyrics.models import TrackReference

from fakes import FakeHttpClient, FakePlayer

SPOTIFY_ID = "4uLU6hMCjMI75M1A2tKUQC"

ENV_VARS = ('SPOTIFY_SP_DC', 'LYRIC_FETCHER_TIMEOUT', 'LYRIC_FETCHER_LOG_LEVEL')


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run with an empty home directory, working directory and environment"""
    monkeypatch.setenv('HOME', str(tmp_path))
    monkeypatch.setenv('USERPROFILE', str(tmp_path))
    monkeypatch.chdir(tmp_path)
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def settings(isolated_env):
    """Default settings with a Spotify cookie and no request pacing"""
    settings = Settings(load_env_file=False)
    settings.spotify.sp_dc = "test-cookie"
    settings.network.rate_limit = 1000
    return settings


@pytest.fixture
def fake_http():
    return FakeHttpClient()


@pytest.fixture
def spotify_track():
    """A Spotify catalogue track"""
    return TrackReference(
        track_id=SPOTIFY_ID,
        track_name="Never Gonna Give You Up",
        artist_name="Rick Astley",
        album_name="Whenever You Need Somebody",
    )


@pytest.fixture
def local_track():
    """A local file with full metadata but no Spotify id"""
    return TrackReference(
        track_id="local-file-1",
        track_name="Blue Monday",
        artist_name="New Order",
        album_name="Power, Corruption & Lies",
    )


@pytest.fixture
def player(spotify_track):
    return FakePlayer(track_id=spotify_track.track_id, duration_ms=213_000)
