"""
Now-playing lyric session with staleness protection

Playback changes faster than lyric providers answer. LyricsSession makes
sure the caller only ever receives lyrics for the track that is playing
when the fetch completes:

- Starting a fetch cancels the one in flight, so at most one is active
- The track id is captured when the fetch starts and compared against the
  player after every suspension point that matters
- A result for a track that is no longer playing is discarded (None)

Discarding is not an error. StaleTrackError is used internally to unwind
the fetch and never reaches the caller.
"""

import asyncio
from typing import Optional

from ..config.settings import Settings, get_settings
from ..utils.logger import get_logger
from .base import ColorConsumer, LyricCache, PlayerState
from .exceptions import StaleTrackError
from .models import LyricResult, TrackReference, normalize
from .processor import LyricsProcessor


class LyricsSession:
    """
    Fetches lyrics for the currently playing track

    Args:
        processor: Orchestrator used for network fetches
        player: Read-only view of the host media player
        cache: Optional lyric store consulted before the network
        color_consumer: Optional async callable receiving each result's colour hint
        settings: Settings to use (defaults to the global settings)
    """

    def __init__(
        self,
        processor: LyricsProcessor,
        player: PlayerState,
        cache: Optional[LyricCache] = None,
        color_consumer: Optional[ColorConsumer] = None,
        settings: Optional[Settings] = None
    ):
        self.processor = processor
        self.player = player
        self.cache = cache
        self.color_consumer = color_consumer
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)

        self._current_task: Optional[asyncio.Future] = None

    @property
    def is_fetching(self) -> bool:
        return self._current_task is not None and not self._current_task.done()

    def cancel(self) -> None:
        """Cancel the fetch in flight, if any."""
        if self.is_fetching:
            self.logger.debug("Cancelling in-flight lyric fetch")
            self._current_task.cancel()

    async def fetch(self, track: TrackReference, check_cache_first: Optional[bool] = None) -> Optional[LyricResult]:
        """
        Fetch lyrics for a track, discarding the result if playback moved on

        Args:
            track: Track that is playing now
            check_cache_first: Consult the cache before the network
                               (defaults to lyrics.check_cache_first)

        Returns:
            Normalized LyricResult (possibly empty), or None when the result
            went stale, the fetch was superseded by a newer one, or it failed
            unexpectedly

        Raises:
            asyncio.CancelledError: If the calling task itself is cancelled
        """
        if check_cache_first is None:
            check_cache_first = self.settings.lyrics.check_cache_first

        self.cancel()
        task = asyncio.ensure_future(self._fetch_lyrics(track, check_cache_first))
        self._current_task = task

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                # Superseded by a newer fetch or cancel()
                self.logger.debug(f"Lyric fetch for {track.track_id} was superseded")
                return None
            # The caller was cancelled while the fetch was still running
            task.cancel()
            raise
        except StaleTrackError as e:
            self.logger.info(f"Discarding lyrics: {e}")
            return None
        except Exception as e:
            self.logger.error(f"Lyric fetch for {track} failed unexpectedly: {e}", exc_info=True)
            return None
        finally:
            if self._current_task is task and task.done():
                self._current_task = None

    def _ensure_current(self, initiating_track_id: str) -> None:
        """
        Raises:
            StaleTrackError: If the player moved to another track
        """
        current = self.player.current_track_id
        if current != initiating_track_id:
            raise StaleTrackError(initiating_track_id, current)

    async def _fetch_lyrics(self, track: TrackReference, check_cache_first: bool) -> LyricResult:
        initiating_track_id = track.track_id
        use_cache = self.cache is not None and bool(initiating_track_id)

        if check_cache_first and use_cache:
            cached = self.cache.lookup(initiating_track_id)
            if cached is not None:
                # Cancellation checkpoint
                await asyncio.sleep(0)
                self._ensure_current(initiating_track_id)
                self.logger.debug(f"Serving cached lyrics for {track}")
                return cached

        result = await self.processor.fetch_all(track)
        self._ensure_current(initiating_track_id)

        duration_ms = self.player.current_playback_duration_ms
        if duration_ms is None:
            self.logger.warning(f"Playback duration unavailable for {track}; returning no lyrics")
            return LyricResult.empty()

        normalized = normalize(
            result,
            track.track_name,
            duration_ms,
            self.settings.lyrics.trailing_marker_margin_ms
        )

        if use_cache and not normalized.is_empty:
            self.cache.store(initiating_track_id, normalized)

        self._ensure_current(initiating_track_id)

        if self.color_consumer is not None:
            await self.color_consumer(initiating_track_id, normalized.color_hint)

        return normalized
