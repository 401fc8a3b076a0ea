"""
NetEase Cloud Music lyric provider - fuzzy fallback

NetEase has excellent coverage of Asian catalogues but only offers a
free-text search, so the top hit has to be checked before its lyrics are
trusted. The candidate is accepted when enough of its fields are close to
the query (Jaro-Winkler similarity, rapidfuzz):

    track  vs song name
    artist vs first song artist
    album  vs song album

By default at least 2 of the 3 scores must be strictly greater than 0.75.

NetEase lyrics arrive as LRC text with a handful of HTML entities left in;
they are unescaped before parsing. Songs whose only timestamp is 0 were
never timed and count as missing lyrics.
"""

from typing import Any, Callable, Iterable, List, Optional
from urllib.parse import quote, urlencode

from ..config.settings import Settings
from ..utils.helpers import calculate_similarity, clean_field, count_above, unescape_html_entities
from .base import LyricProvider
from .exceptions import (
    DecodeError,
    LyricsMissingError,
    MissingMetadataError,
    NoMatchError,
    ProviderError,
    RateLimitedError,
    RequestError,
)
from .http import HttpClient, HttpResponse
from .lrc import parse_lrc
from .models import LyricResult, ProviderIdentity, SongResult, TrackReference


def passes_similarity_gate(scores: Iterable[float], threshold: float = 0.75, min_matches: int = 2) -> bool:
    """
    Decide whether a search candidate is close enough to the query

    Args:
        scores: Per-field similarity scores in [0, 1]
        threshold: A score counts only when strictly greater than this
        min_matches: Number of counting scores required

    Returns:
        True when at least min_matches scores exceed threshold
    """
    return count_above(scores, threshold) >= min_matches


class NetEaseLyricProvider(LyricProvider):
    """NetEase search with a similarity gate, followed by an LRC download"""

    identity = ProviderIdentity(name="NetEase", priority_rank=2)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[HttpClient] = None,
        timeout: Optional[float] = None,
        platform_check: Optional[Callable[[], bool]] = None,
        similarity: Callable[[str, str], float] = calculate_similarity
    ):
        """
        Initialize the NetEase provider

        Args:
            settings: Settings to use (defaults to the global settings)
            http_client: Transport override, mainly for tests
            timeout: Per-call deadline in seconds
            platform_check: Host OS support check
            similarity: String similarity function returning a score in [0, 1]
        """
        super().__init__(settings, http_client, timeout, platform_check)
        self.base_url = self.settings.netease.base_url.rstrip('/')
        self.similarity = similarity
        self.threshold = self.settings.lyrics.similarity_threshold
        self.min_matches = self.settings.lyrics.min_similarity_matches

    @property
    def user_agent(self) -> str:
        return self.settings.netease.user_agent

    def build_search_url(self, track_name: str, artist_name: str, limit: int) -> str:
        query = urlencode([('keywords', f"{track_name} {artist_name}"), ('limit', str(limit))], quote_via=quote)
        return f"{self.base_url}/search?{query}"

    def build_lyric_url(self, song_id: Any) -> str:
        return f"{self.base_url}/lyric?{urlencode([('id', str(song_id))], quote_via=quote)}"

    def _check_status(self, response: HttpResponse) -> None:
        if response.ok:
            return
        details = {'status': response.status, 'url': response.url}
        if response.status == 429:
            raise RateLimitedError("NetEase temporarily rate limited requests", provider=self.name, details=details)
        raise RequestError(f"NetEase returned HTTP {response.status}", provider=self.name, details=details)

    def _songs_from_search(self, payload: Any) -> List[dict]:
        if not isinstance(payload, dict):
            raise DecodeError("NetEase search returned an unexpected payload", provider=self.name)
        result = payload.get('result') or {}
        if not isinstance(result, dict):
            raise DecodeError("NetEase search returned an unexpected payload", provider=self.name)
        songs = result.get('songs') or []
        if not isinstance(songs, list):
            raise DecodeError("NetEase search returned an unexpected song list", provider=self.name)
        return [song for song in songs if isinstance(song, dict)]

    @staticmethod
    def _first_artist(song: dict) -> Optional[str]:
        artists = song.get('artists')
        if not isinstance(artists, list) or not artists or not isinstance(artists[0], dict):
            return None
        name = artists[0].get('name')
        return name if isinstance(name, str) else None

    @staticmethod
    def _album_name(song: dict) -> str:
        album = song.get('album') or {}
        return (album.get('name') if isinstance(album, dict) else None) or ""

    def similarity_scores(self, track_name: str, artist_name: str, album_name: str, song: dict) -> List[float]:
        return [
            self.similarity(track_name, song.get('name') or ""),
            self.similarity(artist_name, self._first_artist(song) or ""),
            self.similarity(album_name, self._album_name(song)),
        ]

    async def _download_lines(self, song_id: Any, seconds: float):
        """
        Download and parse the LRC lyrics of a NetEase song

        Raises:
            LyricsMissingError: If the song has no lrc text or was never timed
        """
        response = await self._get(self.build_lyric_url(song_id), seconds)
        self._check_status(response)
        payload = self._decode_json(response, "lyric response")

        lrc = payload.get('lrc') if isinstance(payload, dict) else None
        text = lrc.get('lyric') if isinstance(lrc, dict) else None
        if not isinstance(text, str):
            raise LyricsMissingError(
                "NetEase did not provide any time-synchronised lyrics",
                provider=self.name,
                details={'song_id': song_id}
            )

        lines = parse_lrc(unescape_html_entities(text))
        self.logger.debug(f"Parsed NetEase lyric payload containing {len(lines)} lines")

        if lines and lines[-1].start_time_ms == 0:
            raise LyricsMissingError(
                "NetEase lyrics are not time-synchronised",
                provider=self.name,
                details={'song_id': song_id}
            )
        return lines

    async def fetch_lyrics(self, track: TrackReference, timeout: Optional[float] = None) -> LyricResult:
        """
        Search NetEase, gate the top hit on similarity and download its lyrics

        Args:
            track: Track with non-empty name, artist and album
            timeout: Per-call deadline override in seconds

        Returns:
            LyricResult without colour

        Raises:
            MissingMetadataError: If any of the three fields is empty after trimming
            NoMatchError: If there is no hit or the hit fails the similarity gate
            LyricsMissingError: If the hit has no usable synced lyrics
        """
        seconds = self._resolve_timeout(timeout)
        self._check_preconditions(seconds)

        track_name = clean_field(track.track_name)
        artist = clean_field(track.artist_name)
        album = clean_field(track.album_name)
        if not (track_name and artist and album):
            raise MissingMetadataError(
                "NetEase needs track, artist and album names",
                provider=self.name,
                details={'track': track_name, 'artist': artist, 'album': album}
            )

        self.logger.info(f"Searching NetEase for track {track_name} by {artist}")
        response = await self._get(self.build_search_url(track_name, artist, limit=1), seconds)
        self._check_status(response)
        songs = self._songs_from_search(self._decode_json(response, "search response"))

        if not songs or not self._first_artist(songs[0]):
            raise NoMatchError("NetEase search returned no usable result", provider=self.name)

        song = songs[0]
        scores = self.similarity_scores(track_name, artist, album, song)
        if not passes_similarity_gate(scores, self.threshold, self.min_matches):
            self.logger.info(
                f"NetEase similarity gates rejected track {song.get('id')} "
                f"(scores: {', '.join(f'{score:.2f}' for score in scores)})"
            )
            raise NoMatchError(
                "No NetEase match satisfied the similarity requirements",
                provider=self.name,
                details={'song_id': song.get('id'), 'scores': scores}
            )

        lines = await self._download_lines(song.get('id'), seconds)
        return LyricResult(lines=lines)

    async def search(self, track_name: str, artist_name: str) -> List[SongResult]:
        """
        Search NetEase and download lyrics for every hit

        Hits without an artist, without lyrics or whose lyric download fails
        are skipped.

        Raises:
            MissingMetadataError: If track or artist is empty after trimming
        """
        seconds = self._resolve_timeout(None)
        self._check_preconditions(seconds)

        track_name = clean_field(track_name)
        artist_name = clean_field(artist_name)
        if not (track_name and artist_name):
            raise MissingMetadataError("NetEase search needs track and artist names", provider=self.name)

        limit = self.settings.netease.search_limit
        response = await self._get(self.build_search_url(track_name, artist_name, limit=limit), seconds)
        self._check_status(response)
        songs = self._songs_from_search(self._decode_json(response, "search response"))

        results = []
        for song in songs:
            artist = self._first_artist(song)
            if not artist:
                continue
            try:
                lines = await self._download_lines(song.get('id'), seconds)
            except ProviderError as e:
                self.logger.error(f"Failed to download NetEase lyrics for song {song.get('id')}: {e}")
                continue
            results.append(SongResult(
                source=self.name,
                song_name=song.get('name') or "",
                album_name=self._album_name(song),
                artist_name=artist,
                lines=lines,
            ))
        return results
