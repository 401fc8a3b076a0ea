"""
Configuration package for lyric-fetcher

Settings are read from (highest priority first):
1. Environment variables, optionally loaded from a .env file
2. A YAML configuration file
3. Dataclass defaults

Usage:
    from lyric_fetcher.config import get_settings

    settings = get_settings()
    timeout = settings.lyrics.timeout
"""

# Settings management imports
from .settings import (
    get_settings,
    reload_settings,
    Settings,
    LyricsConfig,
    SpotifyConfig,
    LRCLibConfig,
    NetEaseConfig,
    NetworkConfig,
    LoggingConfig,
)

__all__ = [
    'get_settings',      # Singleton settings access
    'reload_settings',   # Re-read files and environment
    'Settings',          # Settings class for direct instantiation

    # Section dataclasses
    'LyricsConfig',
    'SpotifyConfig',
    'LRCLibConfig',
    'NetEaseConfig',
    'NetworkConfig',
    'LoggingConfig',
]
