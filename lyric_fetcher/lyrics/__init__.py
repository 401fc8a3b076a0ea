"""
Lyrics acquisition package for lyric-fetcher

Components:
- LyricsSession: Staleness-guarded fetch for the currently playing track
- LyricsProcessor: Walks the providers in priority order
- SpotifyLyricProvider: Primary source, lyrics plus background colour
- LRCLibLyricProvider: Structured fallback (exact artist/track/album lookup)
- NetEaseLyricProvider: Fuzzy fallback gated by string similarity
- run_with_timeout: Deadline wrapper used for every network call
- normalize: Gives every result the same trailing "Now Playing" shape

Usage:
    processor = get_lyrics_processor()
    session = LyricsSession(processor, player, cache=MemoryLyricCache())
    result = await session.fetch(track)
"""

# Data model and normalizer
from .models import (
    TrackReference,
    LyricLine,
    LyricResult,
    ProviderIdentity,
    AttemptOutcome,
    FetchAttempt,
    SongResult,
    normalize,
)

# Error hierarchy
from .exceptions import (
    LyricFetcherError,
    ConfigError,
    StaleTrackError,
    ProviderError,
    PreconditionError,
    UnsupportedPlatformError,
    InvalidTimeoutError,
    MissingMetadataError,
    InputRejectedError,
    LocalTrackUnsupportedError,
    NoMatchError,
    LyricsMissingError,
    RateLimitedError,
    AuthenticationError,
    MissingCookieError,
    SecretFetchError,
    TokenGenerationError,
    DecodeError,
    RequestError,
    ProviderTimeoutError,
    RequestConstructionError,
)

# Timeout executor
from .timeout import run_with_timeout, AsyncTimeoutError, InvalidTimeout, TimeoutExceeded

# Providers and orchestration
from .base import LyricProvider, LyricCache, PlayerState, ColorConsumer, MemoryLyricCache
from .spotify import SpotifyLyricProvider
from .lrclib import LRCLibLyricProvider
from .netease import NetEaseLyricProvider
from .processor import LyricsProcessor, get_lyrics_processor, reset_lyrics_processor
from .session import LyricsSession

__all__ = [
    # Models
    'TrackReference',
    'LyricLine',
    'LyricResult',
    'ProviderIdentity',
    'AttemptOutcome',
    'FetchAttempt',
    'SongResult',
    'normalize',

    # Errors
    'LyricFetcherError',
    'ConfigError',
    'StaleTrackError',
    'ProviderError',
    'PreconditionError',
    'UnsupportedPlatformError',
    'InvalidTimeoutError',
    'MissingMetadataError',
    'InputRejectedError',
    'LocalTrackUnsupportedError',
    'NoMatchError',
    'LyricsMissingError',
    'RateLimitedError',
    'AuthenticationError',
    'MissingCookieError',
    'SecretFetchError',
    'TokenGenerationError',
    'DecodeError',
    'RequestError',
    'ProviderTimeoutError',
    'RequestConstructionError',

    # Timeout executor
    'run_with_timeout',
    'AsyncTimeoutError',
    'InvalidTimeout',
    'TimeoutExceeded',

    # Providers
    'LyricProvider',
    'SpotifyLyricProvider',
    'LRCLibLyricProvider',
    'NetEaseLyricProvider',

    # Collaborator interfaces
    'LyricCache',
    'PlayerState',
    'ColorConsumer',
    'MemoryLyricCache',

    # Orchestration
    'LyricsProcessor',
    'get_lyrics_processor',
    'reset_lyrics_processor',
    'LyricsSession',
]
