"""
Fetch orchestration across lyric providers

LyricsProcessor walks the configured providers in priority order and returns
the first non-empty result. A provider that fails, for whatever reason, is
logged and skipped; the next one is tried. Cancellation is the only thing
that stops the walk early without a result: asyncio.CancelledError is never
caught here and propagates to the caller.

Default orders:
- now-playing fetch: Spotify, LRCLIB, NetEase
- batch search:      Spotify, NetEase, LRCLIB

Both orders come from the lyrics.provider_order and lyrics.search_order
settings. Every provider attempt is recorded as a FetchAttempt and counted
in the processor statistics.
"""

import time
from typing import Any, Dict, List, Optional, Sequence

from ..config.settings import Settings, get_settings
from ..utils.logger import get_logger
from .base import LyricProvider
from .exceptions import ConfigError, InputRejectedError, ProviderError
from .lrclib import LRCLibLyricProvider
from .models import AttemptOutcome, FetchAttempt, LyricResult, ProviderIdentity, SongResult, TrackReference
from .netease import NetEaseLyricProvider
from .spotify import SpotifyLyricProvider

PROVIDER_CLASSES = {
    'spotify': SpotifyLyricProvider,
    'lrclib': LRCLibLyricProvider,
    'netease': NetEaseLyricProvider,
}


def _error_kind(error: Exception) -> str:
    if isinstance(error, ProviderError):
        return error.kind
    return error.__class__.__name__


class LyricsProcessor:
    """
    Coordinator for lyric fetching and search across multiple providers

    Providers can be injected (tests, custom sources) or built from the
    settings. Injected fetch providers are ordered by their
    identity.priority_rank; providers built from settings are ranked by
    their position in lyrics.provider_order.

    Statistics:
        total_fetches / successful_fetches / failed_fetches, plus per-provider
        counts of success, empty and error outcomes
    """

    def __init__(
        self,
        providers: Optional[Sequence[LyricProvider]] = None,
        search_providers: Optional[Sequence[LyricProvider]] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the processor

        Args:
            providers: Providers for fetch_all(); built from lyrics.provider_order if None
            search_providers: Providers for search_all(), used in the given order;
                              built from lyrics.search_order if None (reusing fetch
                              providers of the same kind)
            settings: Settings to use (defaults to the global settings)

        Raises:
            ConfigError: If a configured provider name is unknown
        """
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)

        self._registry: Dict[str, LyricProvider] = {}

        if providers is None:
            self.providers = self._build_from_config(self.settings.lyrics.provider_order, rank=True)
        else:
            self.providers = sorted(providers, key=lambda provider: provider.identity.priority_rank)

        if search_providers is not None:
            self.search_providers = list(search_providers)
        elif providers is None:
            self.search_providers = self._build_from_config(self.settings.lyrics.search_order, rank=False)
        else:
            self.search_providers = list(self.providers)

        self.last_attempts: List[FetchAttempt] = []
        self.reset_stats()

    def _build_from_config(self, names: Sequence[str], rank: bool) -> List[LyricProvider]:
        built = []
        for index, name in enumerate(names):
            key = name.lower()
            if key not in PROVIDER_CLASSES:
                raise ConfigError(
                    f"Unknown lyric provider: {name}",
                    details={'known_providers': sorted(PROVIDER_CLASSES)}
                )
            provider = self._registry.get(key)
            if provider is None:
                provider = PROVIDER_CLASSES[key](settings=self.settings)
                self._registry[key] = provider
            if rank:
                # Instance attribute shadows the class default
                provider.identity = ProviderIdentity(name=provider.identity.name, priority_rank=index)
            built.append(provider)
        return built

    async def fetch_all(self, track: TrackReference) -> LyricResult:
        """
        Fetch lyrics from the first provider that has them

        Args:
            track: Track to fetch lyrics for

        Returns:
            The first non-empty LyricResult, or LyricResult.empty() when every
            provider failed or had nothing

        Raises:
            asyncio.CancelledError: If the fetch is cancelled
        """
        self.stats['total_fetches'] += 1
        self.last_attempts = []
        self.logger.debug(f"Fetching lyrics for {track}")

        for provider in self.providers:
            started = time.monotonic()
            try:
                result = await provider.fetch_lyrics(track)
            except Exception as e:
                attempt = self._record(provider, AttemptOutcome.ERROR, started, _error_kind(e))
                if isinstance(e, InputRejectedError):
                    self.logger.info(f"{provider.name} cannot serve {track}: {e}")
                else:
                    self.logger.warning(f"failed for {track}: {e}", extra={'provider': provider.name})
                self.logger.debug(f"Attempt: {attempt}")
                continue

            if result.is_empty:
                self._record(provider, AttemptOutcome.EMPTY, started)
                self.logger.info(f"{provider.name} returned no lyrics for {track}")
                continue

            attempt = self._record(provider, AttemptOutcome.SUCCESS, started)
            self.stats['successful_fetches'] += 1
            self.logger.info(f"Lyrics for {track} found via {provider.name} ({len(result)} lines)")
            self.logger.debug(f"Attempt: {attempt}")
            return result

        self.stats['failed_fetches'] += 1
        self.logger.info(f"No lyrics found for {track} from any provider")
        return LyricResult.empty()

    def _record(self, provider: LyricProvider, outcome: AttemptOutcome, started: float,
                error_kind: Optional[str] = None) -> FetchAttempt:
        attempt = FetchAttempt(
            provider=provider.identity,
            outcome=outcome,
            duration=time.monotonic() - started,
            error_kind=error_kind,
        )
        self.last_attempts.append(attempt)
        usage = self.stats['provider_usage'].setdefault(
            provider.name, {outcome_key.value: 0 for outcome_key in AttemptOutcome}
        )
        usage[outcome.value] += 1
        return attempt

    async def search_all(self, track_name: str, artist_name: str) -> List[SongResult]:
        """
        Collect search candidates from every search provider

        Args:
            track_name: Track title to search for
            artist_name: Artist name to search for

        Returns:
            Candidates from all providers, grouped in search order

        Raises:
            asyncio.CancelledError: If the search is cancelled
        """
        results: List[SongResult] = []
        for provider in self.search_providers:
            try:
                candidates = await provider.search(track_name, artist_name)
            except Exception as e:
                self.logger.warning(f"search failed for {track_name} by {artist_name}: {e}", extra={'provider': provider.name})
                continue
            self.logger.debug(f"{provider.name} search returned {len(candidates)} candidates")
            results.extend(candidates)
        return results

    def get_stats(self) -> Dict[str, Any]:
        """
        Get fetch statistics and the active configuration

        Returns:
            Dictionary with totals, success rate, per-provider outcome counts
            and provider orders
        """
        total = self.stats['total_fetches']
        success_rate = (self.stats['successful_fetches'] / total * 100) if total > 0 else 0

        return {
            'total_fetches': total,
            'successful_fetches': self.stats['successful_fetches'],
            'failed_fetches': self.stats['failed_fetches'],
            'success_rate': f"{success_rate:.1f}%",
            'provider_usage': {name: dict(counts) for name, counts in self.stats['provider_usage'].items()},
            'configuration': {
                'provider_order': [provider.name for provider in self.providers],
                'search_order': [provider.name for provider in self.search_providers],
                'timeout': self.settings.lyrics.timeout,
            },
        }

    def reset_stats(self) -> None:
        self.stats = {
            'total_fetches': 0,
            'successful_fetches': 0,
            'failed_fetches': 0,
            'provider_usage': {},
        }

    async def close(self) -> None:
        """Close every provider's HTTP client."""
        seen = set()
        for provider in list(self.providers) + list(self.search_providers):
            if id(provider) in seen:
                continue
            seen.add(id(provider))
            await provider.close()

    async def __aenter__(self) -> "LyricsProcessor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# Global processor instance
_lyrics_processor: Optional[LyricsProcessor] = None


def get_lyrics_processor() -> LyricsProcessor:
    """
    Get the global lyrics processor, creating it from the settings on first use

    Returns:
        Shared LyricsProcessor instance
    """
    global _lyrics_processor
    if _lyrics_processor is None:
        _lyrics_processor = LyricsProcessor()
    return _lyrics_processor


def reset_lyrics_processor() -> None:
    """Drop the global processor so the next call builds a new one (for tests and config reloads)."""
    global _lyrics_processor
    _lyrics_processor = None
