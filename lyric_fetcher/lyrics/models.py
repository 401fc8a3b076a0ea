"""
Data models for the lyrics pipeline

These dataclasses are the currency passed between the providers, the
orchestrator and the caller. All of them are immutable: a new TrackReference
is created on every playback change and a new LyricResult on every completed
fetch.

Models:
- TrackReference: Identity of the track lyrics are requested for
- LyricLine: One time-synchronised line
- LyricResult: Ordered lines plus an optional ARGB colour hint
- ProviderIdentity: Static name and priority of a provider
- FetchAttempt: Transient record of one provider attempt (logging/stats only)
- SongResult: Search candidate returned by provider search()

The module also hosts the payload normalizer, normalize(), which gives every
result the same shape regardless of the provider it came from.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

from ..utils.logger import get_logger

logger = get_logger(__name__)

# Synthetic trailing line is placed this far past the end of the track
TRAILING_MARKER_MARGIN_MS = 5000
NOW_PLAYING_PREFIX = "Now Playing: "


@dataclass(frozen=True)
class TrackReference:
    """
    Identity of a track as reported by the host media player

    The track id is opaque: a 22-character base62 id for Spotify, empty or a
    player-specific id for everything else. It is the cache key and the
    correlation key used for staleness detection.

    Attributes:
        track_id: Opaque track identifier
        track_name: Song title
        artist_name: Primary artist (may be missing)
        album_name: Album title (may be missing)
    """
    track_id: str
    track_name: str
    artist_name: Optional[str] = None
    album_name: Optional[str] = None

    def __str__(self) -> str:
        artist = self.artist_name or "unknown artist"
        return f"{artist} - {self.track_name} [{self.track_id or 'no id'}]"


@dataclass(frozen=True)
class LyricLine:
    """
    A single time-synchronised lyric line

    Attributes:
        start_time_ms: Offset from the start of the track in milliseconds
        words: Line text, empty for instrumental gaps
    """
    start_time_ms: float
    words: str = ""

    def __post_init__(self):
        if self.start_time_ms < 0:
            raise ValueError(f"start_time_ms must be non-negative, got {self.start_time_ms}")


@dataclass(frozen=True)
class LyricResult:
    """
    Lyric payload produced by a provider or by the pipeline

    Attributes:
        lines: Lines sorted ascending by start time
        color_hint: Signed 32-bit ARGB background colour supplied by the provider, if any
    """
    lines: Tuple[LyricLine, ...] = ()
    color_hint: Optional[int] = None

    def __post_init__(self):
        # Accept any iterable but always store a tuple so the result stays hashable
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, 'lines', tuple(self.lines))

    @classmethod
    def empty(cls) -> "LyricResult":
        """Result signalling "no lyrics available"."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def __len__(self) -> int:
        return len(self.lines)

    def processed(self, song_name: str, duration_ms: float,
                  margin_ms: float = TRAILING_MARKER_MARGIN_MS) -> "LyricResult":
        """Shortcut for normalize(self, ...)."""
        return normalize(self, song_name, duration_ms, margin_ms)


@dataclass(frozen=True)
class ProviderIdentity:
    """
    Static identity of a lyric provider

    Attributes:
        name: Display name used in logs ("Spotify", "LRCLIB", "NetEase")
        priority_rank: Position in the now-playing fetch order, lower runs first
    """
    name: str
    priority_rank: int


class AttemptOutcome(Enum):
    """Outcome of a single provider attempt"""
    SUCCESS = "success"  # Provider returned lyrics
    EMPTY = "empty"      # Provider answered but had nothing
    ERROR = "error"      # Provider raised


@dataclass(frozen=True)
class FetchAttempt:
    """
    Record of one provider attempt inside a fetch

    Only used for logging and the orchestrator's statistics, never persisted.

    Attributes:
        provider: Provider that was attempted
        outcome: What happened
        duration: Wall-clock seconds spent in the provider
        error_kind: ProviderError.kind (or exception class name) when outcome is ERROR
    """
    provider: ProviderIdentity
    outcome: AttemptOutcome
    duration: float
    error_kind: Optional[str] = None

    def __str__(self) -> str:
        suffix = f" ({self.error_kind})" if self.error_kind else ""
        return f"{self.provider.name}: {self.outcome.value}{suffix} in {self.duration:.2f}s"


@dataclass(frozen=True)
class SongResult:
    """
    Candidate match returned by a provider search

    Attributes:
        source: Provider label ("Spotify", "LRCLIB", "NetEase")
        song_name: Title as stored by the provider
        album_name: Album as stored by the provider
        artist_name: Artist as stored by the provider
        lines: Full time-synchronised lyrics of the candidate
    """
    source: str
    song_name: str
    album_name: str
    artist_name: str
    lines: Tuple[LyricLine, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, 'lines', tuple(self.lines))


def now_playing_text(song_name: str) -> str:
    """Text of the synthetic trailing marker line."""
    return f"{NOW_PLAYING_PREFIX}{song_name}"


def _is_marker(line: LyricLine, marker: LyricLine) -> bool:
    return line.words == marker.words and line.start_time_ms == marker.start_time_ms


def normalize(result: LyricResult, song_name: str, duration_ms: float,
              margin_ms: float = TRAILING_MARKER_MARGIN_MS) -> LyricResult:
    """
    Normalize a raw provider payload into the shape consumers expect

    Blank lines are dropped and a "Now Playing: {song_name}" line is appended
    margin_ms past the end of the track, which keeps the display stable at the
    song boundary during looped playback. A marker that is already present for
    the same song and duration is dropped first, so normalizing twice is a
    no-op.

    Args:
        result: Raw result from a provider
        song_name: Title of the playing song
        duration_ms: Track duration in milliseconds
        margin_ms: Distance between the end of the track and the marker line

    Returns:
        Normalized result, or the input unchanged if fewer than two lines remain
    """
    marker = LyricLine(start_time_ms=duration_ms + margin_ms, words=now_playing_text(song_name))

    filtered = [
        line for line in result.lines
        if line.words.strip() and not _is_marker(line, marker)
    ]

    if len(filtered) < 2:
        logger.debug("Skipping lyric post-processing because fewer than two lines were returned")
        return result

    return replace(result, lines=tuple(filtered) + (marker,))


def sorted_lines(lines: Iterable[LyricLine]) -> Tuple[LyricLine, ...]:
    """Sort lines by start time, keeping the original order for equal timestamps."""
    return tuple(sorted(lines, key=lambda line: line.start_time_ms))
