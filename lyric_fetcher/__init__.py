"""
lyric-fetcher: time-synchronised lyrics for the track that is playing now

Given a track's identity, lyric-fetcher tries Spotify, LRCLIB and NetEase in
priority order, rejects doubtful matches, bounds every network call with a
deadline and returns normalized line-synchronised lyrics plus an optional
background colour. Results that arrive after playback has moved on are
discarded.

Quick start:
    import asyncio
    from lyric_fetcher import LyricsSession, MemoryLyricCache, TrackReference, get_lyrics_processor

    session = LyricsSession(get_lyrics_processor(), player, cache=MemoryLyricCache())
    result = await session.fetch(TrackReference("4uLU6hMCjMI75M1A2tKUQC", "Never Gonna Give You Up",
                                                "Rick Astley", "Whenever You Need Somebody"))

Configuration lives in lyric_fetcher.config; logging is opt-in through
lyric_fetcher.utils.setup_logging() or configure_from_settings().
"""

__version__ = "1.0.0"

# The lyrics package must load before config (settings imports its exceptions)
from .lyrics import (
    TrackReference,
    LyricLine,
    LyricResult,
    SongResult,
    LyricFetcherError,
    ProviderError,
    MemoryLyricCache,
    LyricsProcessor,
    LyricsSession,
    get_lyrics_processor,
    normalize,
    run_with_timeout,
)
from .config import get_settings, reload_settings, Settings
from .utils import configure_from_settings, get_logger, setup_logging

__all__ = [
    '__version__',

    # Pipeline
    'LyricsSession',
    'LyricsProcessor',
    'get_lyrics_processor',
    'MemoryLyricCache',
    'run_with_timeout',
    'normalize',

    # Models
    'TrackReference',
    'LyricLine',
    'LyricResult',
    'SongResult',

    # Errors
    'LyricFetcherError',
    'ProviderError',

    # Configuration and logging
    'get_settings',
    'reload_settings',
    'Settings',
    'configure_from_settings',
    'get_logger',
    'setup_logging',
]
