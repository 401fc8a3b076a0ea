"""
LRCLIB lyric provider - structured fallback

LRCLIB (https://lrclib.net) is a free, open lyrics database. Its /api/get
endpoint performs an exact lookup on (artist, track, album), so all three
fields are required; a missing field is rejected before any request is made.
Synced lyrics are delivered as LRC text and parsed locally.

Status Mapping:
- 404: NoMatchError (LRCLIB has no such track)
- 429: RateLimitedError
- any other non-2xx: RequestError
- malformed JSON: DecodeError
"""

from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import quote, urlencode, urlsplit

from ..config.settings import Settings
from ..utils.helpers import clean_field
from .base import LyricProvider
from .exceptions import (
    DecodeError,
    MissingMetadataError,
    NoMatchError,
    RateLimitedError,
    RequestConstructionError,
    RequestError,
)
from .http import HttpClient, HttpResponse
from .lrc import parse_lrc
from .models import LyricLine, LyricResult, ProviderIdentity, SongResult, TrackReference


class LRCLibLyricProvider(LyricProvider):
    """LRCLIB exact-match lookup and search"""

    identity = ProviderIdentity(name="LRCLIB", priority_rank=1)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[HttpClient] = None,
        timeout: Optional[float] = None,
        platform_check: Optional[Callable[[], bool]] = None
    ):
        super().__init__(settings, http_client, timeout, platform_check)
        self.base_url = self.settings.lrclib.base_url.rstrip('/')

    @property
    def user_agent(self) -> str:
        return self.settings.lrclib.user_agent

    def build_url(self, path: str, params: List[Tuple[str, str]]) -> str:
        """
        Build an endpoint URL with a percent-encoded query string

        Raises:
            RequestConstructionError: If the configured base URL is not absolute
        """
        parts = urlsplit(self.base_url)
        if not parts.scheme or not parts.netloc:
            self.logger.error(f"Failed to assemble LRCLIB {path} request URL from {self.base_url!r}")
            raise RequestConstructionError(
                f"Invalid LRCLIB base URL: {self.base_url!r}",
                provider=self.name,
                details={'path': path}
            )
        return f"{self.base_url}{path}?{urlencode(params, quote_via=quote)}"

    async def fetch_lyrics(self, track: TrackReference, timeout: Optional[float] = None) -> LyricResult:
        """
        Look up synced lyrics by exact artist, track and album

        Args:
            track: Track with non-empty name, artist and album
            timeout: Per-call deadline override in seconds

        Returns:
            LyricResult without colour; empty for instrumentals or records
            without synced lyrics

        Raises:
            MissingMetadataError: If any of the three fields is empty after trimming
            NoMatchError: If LRCLIB does not know the track
        """
        seconds = self._resolve_timeout(timeout)
        self._check_preconditions(seconds)

        track_name = clean_field(track.track_name)
        artist = clean_field(track.artist_name)
        album = clean_field(track.album_name)
        if not (track_name and artist and album):
            self.logger.error("LRCLIB request missing required metadata (track/artist/album)")
            raise MissingMetadataError(
                "LRCLIB needs track, artist and album names",
                provider=self.name,
                details={'track': track_name, 'artist': artist, 'album': album}
            )

        url = self.build_url('/api/get', [
            ('artist_name', artist),
            ('track_name', track_name),
            ('album_name', album),
        ])
        self.logger.info(f"LRCLIB /api/get request prepared for track {track_name}")

        response = await self._get(url, seconds)
        self._check_status(response)

        record = self._decode_json(response, "response")
        if not isinstance(record, dict):
            raise DecodeError("LRCLIB returned an unexpected payload", provider=self.name)

        lines = self.lines_from_record(record)
        self.logger.info(f"LRCLIB returned {len(lines)} lyric lines for track {track.track_id or track_name}")
        return LyricResult(lines=lines)

    def _check_status(self, response: HttpResponse) -> None:
        if response.ok:
            return
        details = {'status': response.status, 'url': response.url}
        if response.status == 404:
            raise NoMatchError("LRCLIB has no lyrics for this track", provider=self.name, details=details)
        if response.status == 429:
            self.logger.warning("LRCLIB rate limited lyric requests")
            raise RateLimitedError("LRCLIB temporarily rate limited lyric requests", provider=self.name,
                                   details=details)
        raise RequestError(f"LRCLIB returned HTTP {response.status}", provider=self.name, details=details)

    @staticmethod
    def lines_from_record(record: Any) -> Tuple[LyricLine, ...]:
        """Parse the syncedLyrics field of an LRCLIB record."""
        if record.get('instrumental'):
            return ()
        synced = record.get('syncedLyrics')
        if not isinstance(synced, str) or not synced.strip():
            return ()
        return parse_lrc(synced)

    async def search(self, track_name: str, artist_name: str) -> List[SongResult]:
        """
        Search LRCLIB by track and artist

        Returns:
            One SongResult per LRCLIB record, in the order LRCLIB ranked them

        Raises:
            MissingMetadataError: If track or artist is empty after trimming
        """
        seconds = self._resolve_timeout(None)
        self._check_preconditions(seconds)

        track_name = clean_field(track_name)
        artist_name = clean_field(artist_name)
        if not (track_name and artist_name):
            self.logger.error("LRCLIB search missing track or artist metadata")
            raise MissingMetadataError("LRCLIB search needs track and artist names", provider=self.name)

        url = self.build_url('/api/search', [
            ('track_name', track_name),
            ('artist_name', artist_name),
        ])
        self.logger.info(f"LRCLIB /api/search request prepared for track {track_name} by {artist_name}")

        response = await self._get(url, seconds)
        self._check_status(response)

        records = self._decode_json(response, "search response")
        if not isinstance(records, list):
            raise DecodeError("LRCLIB search returned an unexpected payload", provider=self.name)

        results = []
        for record in records:
            if not isinstance(record, dict):
                continue
            results.append(SongResult(
                source=self.name,
                song_name=record.get('trackName') or "",
                album_name=record.get('albumName') or "",
                artist_name=record.get('artistName') or "",
                lines=self.lines_from_record(record),
            ))

        self.logger.info(f"LRCLIB search returned {len(results)} candidate tracks")
        return results
