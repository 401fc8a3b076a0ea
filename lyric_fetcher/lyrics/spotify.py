"""
Spotify lyric provider - primary lyrics source

Spotify's web player serves line-synchronised lyrics together with a
background colour for every catalogue track. Access requires a short-lived
bearer token, which is obtained from the web-player token endpoint using:

1. The user's sp_dc session cookie
2. The current server time
3. A one-time code (HOTP/SHA-1, 6 digits, 30 second steps) computed from a
   secret that is published, obfuscated, in a remote JSON document

Token Handling:
- The token is cached together with its expiry timestamp (milliseconds)
- It is refreshed only when absent or expired
- Refreshes are serialized with an asyncio.Lock, so concurrent fetches that
  find the token expired trigger a single refresh

Failure Mapping:
- Non-catalogue (local file) ids are rejected before any I/O
- Missing cookie, secret document or token problems are AuthenticationError
  subclasses and end the attempt (no retry)
- A literal "too many requests" body is RateLimitedError
- Malformed lyric payloads are DecodeError

Besides fetching, the provider can resolve free-text track metadata to a
Spotify catalogue entry through the partner search API, which powers
search().
"""

import asyncio
import binascii
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, urlencode

from ..config.settings import Settings
from ..utils.helpers import (
    clean_field,
    derive_totp_secret,
    generate_hotp,
    is_valid_spotify_id,
    secret_to_key,
)
from .base import LyricProvider
from .exceptions import (
    AuthenticationError,
    DecodeError,
    LocalTrackUnsupportedError,
    MissingCookieError,
    ProviderTimeoutError,
    RateLimitedError,
    RequestError,
    SecretFetchError,
    TokenGenerationError,
)
from .http import HttpClient
from .models import LyricLine, LyricResult, ProviderIdentity, SongResult, TrackReference, sorted_lines

RATE_LIMIT_BODY = "too many requests"
TOTP_STEP_SECONDS = 30


@dataclass(frozen=True)
class AccessToken:
    """
    Web-player bearer token

    Attributes:
        value: Bearer token string
        expiration_ms: Unix timestamp in milliseconds after which the token is dead
    """
    value: str
    expiration_ms: int

    def is_alive(self, now_ms: float) -> bool:
        return self.expiration_ms > now_ms


def to_signed_32(value: int) -> int:
    """Fold an integer into the signed 32-bit range (ARGB colours are sent either way)."""
    return ((int(value) + 2 ** 31) % 2 ** 32) - 2 ** 31


class SpotifyLyricProvider(LyricProvider):
    """
    Spotify web-player lyrics with colour metadata

    Only tracks with a 22-character Spotify id can be served. Everything
    else (local files, other players' ids) is rejected with
    LocalTrackUnsupportedError without touching the network.
    """

    identity = ProviderIdentity(name="Spotify", priority_rank=0)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[HttpClient] = None,
        timeout: Optional[float] = None,
        platform_check: Optional[Callable[[], bool]] = None,
        sp_dc: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the Spotify provider

        Args:
            settings: Settings to use (defaults to the global settings)
            http_client: Transport override, mainly for tests
            timeout: Per-call deadline in seconds
            platform_check: Host OS support check
            sp_dc: Session cookie override (defaults to spotify.sp_dc)
            clock: Returns the current unix time in seconds
        """
        super().__init__(settings, http_client, timeout, platform_check)
        self.config = self.settings.spotify
        self.sp_dc = self.config.sp_dc if sp_dc is None else sp_dc
        self.clock = clock

        self._access_token: Optional[AccessToken] = None
        self._token_lock: Optional[asyncio.Lock] = None

    @property
    def user_agent(self) -> str:
        return self.settings.spotify.user_agent

    @property
    def access_token(self) -> Optional[AccessToken]:
        return self._access_token

    def _now_ms(self) -> float:
        return self.clock() * 1000

    def _token_alive(self) -> bool:
        return self._access_token is not None and self._access_token.is_alive(self._now_ms())

    def _lock(self) -> asyncio.Lock:
        # Created lazily so the lock binds to the running loop
        if self._token_lock is None:
            self._token_lock = asyncio.Lock()
        return self._token_lock

    def invalidate_token(self) -> None:
        """Forget the cached token so the next request generates a new one."""
        self._access_token = None

    # --- Authentication ---

    async def ensure_access_token(self, timeout: float) -> AccessToken:
        """
        Return a live access token, generating one if needed

        Args:
            timeout: Deadline for each network call of the refresh

        Returns:
            Live AccessToken

        Raises:
            MissingCookieError: If no sp_dc cookie is configured
            SecretFetchError: If the remote secret cannot be fetched or decoded
            TokenGenerationError: If the token endpoint returns an unusable payload
            ProviderTimeoutError: If a refresh request timed out
        """
        if self._token_alive():
            return self._access_token

        async with self._lock():
            # Another task may have refreshed while this one waited
            if self._token_alive():
                return self._access_token

            if not self.sp_dc:
                self.logger.error("Cannot generate Spotify access token because cookie is missing")
                raise MissingCookieError("Spotify authentication cookie is missing", provider=self.name)

            server_time = await self._fetch_server_time(timeout)
            current_unix = int(self.clock())

            message = await self._fetch_secret(timeout)
            try:
                key = secret_to_key(derive_totp_secret(message))
            except (binascii.Error, ValueError) as e:
                raise SecretFetchError(
                    "Spotify secret could not be turned into a key",
                    provider=self.name,
                    details={'original_error': str(e)}
                ) from e

            totp = generate_hotp(key, current_unix // TOTP_STEP_SECONDS)
            url = self.build_token_url(totp, server_time, current_unix)

            response = await self._get(url, timeout, headers={'Cookie': f"sp_dc={self.sp_dc}"})
            self._access_token = self._parse_token(response)
            self.logger.info(f"Spotify access token generated with expiry {self._access_token.expiration_ms}")
            return self._access_token

    async def _fetch_server_time(self, timeout: float) -> int:
        response = await self._get(self.config.server_time_url, timeout)
        try:
            payload = response.json()
            return int(payload['serverTime'])
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error(f"Unusable Spotify server-time payload: {e}")
            raise TokenGenerationError(
                "Spotify server time could not be read",
                provider=self.name,
                details={'status': response.status, 'original_error': str(e)}
            ) from e

    async def _fetch_secret(self, timeout: float) -> List[int]:
        """
        Fetch the obfuscated TOTP secret

        Raises:
            SecretFetchError: On any failure other than a timeout
        """
        try:
            response = await self._get(self.config.secret_url, timeout)
        except ProviderTimeoutError:
            raise
        except RequestError as e:
            self.logger.error(f"Failed to fetch Spotify secret: {e}")
            raise SecretFetchError("Failed to retrieve Spotify authentication secret", provider=self.name) from e

        try:
            if not response.ok:
                raise ValueError(f"HTTP {response.status}")
            payload = response.json()
            message = [int(value) for value in payload['message']]
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error(f"Failed to decode Spotify secret: {e}")
            raise SecretFetchError(
                "Failed to retrieve Spotify authentication secret",
                provider=self.name,
                details={'status': response.status, 'original_error': str(e)}
            ) from e

        self.logger.info(f"Fetched Spotify secret version {payload.get('latestSecretVersion')}")
        return message

    def build_token_url(self, totp: str, server_time: int, current_unix: int) -> str:
        """Assemble the token endpoint URL with the one-time code and build fields."""
        params = [
            ('reason', 'init'),
            ('productType', 'web-player'),
            ('totp', totp),
            ('totpServer', totp),
            ('totpVer', str(self.config.totp_version)),
            ('sTime', str(server_time)),
            ('cTime', str(current_unix)),
            ('buildVer', '{"%s"}' % self.config.build_version),
            ('buildDate', '{"%s"}' % self.config.build_date),
        ]
        return f"{self.config.token_url}?{urlencode(params, quote_via=quote)}"

    def _parse_token(self, response) -> AccessToken:
        try:
            payload = response.json()
            return AccessToken(
                value=str(payload['accessToken']),
                expiration_ms=int(payload['accessTokenExpirationTimestampMs'])
            )
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error(f"Failed to decode Spotify access token: {e}")
            if self._is_cookie_rejection(response):
                self.logger.error("Spotify rejected the sp_dc cookie (401); sign in again to refresh it")
            raise TokenGenerationError(
                "Unable to generate Spotify access token",
                provider=self.name,
                details={'status': response.status, 'original_error': str(e)}
            ) from e

    @staticmethod
    def _is_cookie_rejection(response) -> bool:
        try:
            return response.json()['error']['code'] == 401
        except (ValueError, KeyError, TypeError):
            return False

    # --- Lyrics ---

    def build_lyrics_url(self, track_id: str) -> str:
        query = urlencode([('format', 'json'), ('vocalRemoval', 'false')], quote_via=quote)
        return f"{self.config.lyrics_url}/{quote(track_id, safe='')}?{query}"

    async def fetch_lyrics(self, track: TrackReference, timeout: Optional[float] = None) -> LyricResult:
        """
        Fetch Spotify lyrics and colour for a catalogue track

        Args:
            track: Track with a 22-character Spotify id
            timeout: Per-call deadline override in seconds

        Returns:
            LyricResult with the background colour hint; empty when Spotify
            returned an empty body or the lyrics are not line-synchronised

        Raises:
            LocalTrackUnsupportedError: For ids that are not 22 characters long
            RateLimitedError: When Spotify answers "too many requests"
            DecodeError: When the payload is malformed
        """
        seconds = self._resolve_timeout(timeout)

        if not is_valid_spotify_id(track.track_id, self.config.track_id_length):
            self.logger.debug(f"Skipping Spotify for non-catalogue track id {track.track_id!r}")
            raise LocalTrackUnsupportedError(
                "Spotify does not supply lyrics for local files",
                provider=self.name,
                details={'track_id': track.track_id}
            )

        self._check_preconditions(seconds)
        token = await self.ensure_access_token(seconds)

        response = await self._get(
            self.build_lyrics_url(track.track_id),
            seconds,
            headers={'app-platform': 'WebPlayer', 'authorization': f"Bearer {token.value}"}
        )

        if not response.body:
            self.logger.info(f"Spotify returned empty lyric payload for track {track.track_id}")
            return LyricResult.empty()

        if response.text() == RATE_LIMIT_BODY or response.status == 429:
            self.logger.warning("Spotify rate limited lyric requests")
            raise RateLimitedError("Spotify temporarily rate limited lyric requests", provider=self.name)

        if response.status == 401:
            self.invalidate_token()
            raise AuthenticationError(
                "Spotify rejected the access token",
                provider=self.name,
                details={'status': response.status}
            )

        result = self.parse_lyrics_payload(self._decode_json(response, "lyric payload"))
        self.logger.info(f"Fetched {len(result)} Spotify lyric lines for track {track.track_id}")
        return result

    def parse_lyrics_payload(self, payload: Any) -> LyricResult:
        """
        Convert a color-lyrics payload into a LyricResult

        Raises:
            DecodeError: If the payload does not have the expected structure
        """
        try:
            lyrics = payload['lyrics']
            color_hint = None
            colors = payload.get('colors') or {}
            if colors.get('background') is not None:
                color_hint = to_signed_32(colors['background'])

            lines = ()
            if lyrics.get('syncType') == 'LINE_SYNCED':
                lines = sorted_lines(
                    LyricLine(start_time_ms=float(line['startTimeMs']), words=line.get('words') or "")
                    for line in lyrics.get('lines') or []
                )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(
                "Unable to decode Spotify lyric payload",
                provider=self.name,
                details={'original_error': str(e)}
            ) from e

        return LyricResult(lines=lines, color_hint=color_hint)

    # --- Search ---

    def build_search_body(self, search_term: str) -> Dict[str, Any]:
        return {
            'variables': {
                'searchTerm': search_term,
                'offset': 0,
                'limit': 1,
                'numberOfTopResults': 1,
                'includeAudiobooks': False,
                'includeArtistHasConcertsField': False,
                'includePreReleases': False,
                'includeLocalConcertsField': False,
                'includeAuthors': False,
            },
            'operationName': 'searchDesktop',
            'extensions': {
                'persistedQuery': {
                    'version': 1,
                    'sha256Hash': self.config.search_query_hash,
                },
            },
        }

    async def resolve_track(
        self,
        track_name: str,
        artist_name: str,
        album_name: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> Optional[TrackReference]:
        """
        Find the Spotify catalogue entry for free-text track metadata

        Used to get lyrics for tracks played outside Spotify (other players
        do not know Spotify ids).

        Args:
            track_name: Track title
            artist_name: Artist name
            album_name: Optional album title, included in the search term when present
            timeout: Per-call deadline override in seconds

        Returns:
            TrackReference with the Spotify id, or None when nothing usable was found
        """
        seconds = self._resolve_timeout(timeout)
        self._check_preconditions(seconds)
        token = await self.ensure_access_token(seconds)

        terms = [clean_field(track_name), clean_field(album_name), clean_field(artist_name)]
        search_term = " ".join(term for term in terms if term)

        response = await self._post(
            self.config.search_url,
            seconds,
            json_body=self.build_search_body(search_term),
            headers={'app-platform': 'WebPlayer', 'authorization': f"Bearer {token.value}"}
        )

        try:
            return self.parse_search_payload(response.json())
        except ValueError as e:
            self.logger.error(f"Failed to parse Spotify internal search response: {e}")
            return None

    def parse_search_payload(self, payload: Any) -> Optional[TrackReference]:
        """Extract the first track hit, or None if any required field is missing."""
        try:
            data = payload['data']['searchV2']['tracksV2']['items'][0]['item']['data']
            track_id = data['id']
            name = data['name']
            album = data['albumOfTrack']['name']
            artist = data['artists']['items'][0]['profile']['name']
        except (KeyError, IndexError, TypeError):
            return None

        if not all(isinstance(value, str) for value in (track_id, name, album, artist)):
            return None

        self.logger.info(f"Parsed Spotify internal search result for track {track_id}")
        return TrackReference(track_id=track_id, track_name=name, artist_name=artist, album_name=album)

    async def search(self, track_name: str, artist_name: str) -> List[SongResult]:
        """
        Search Spotify and return the top hit with its lyrics

        Returns:
            A single SongResult, or an empty list when there is no hit or the
            hit has no synchronised lyrics
        """
        match = await self.resolve_track(track_name, artist_name)
        if match is None:
            self.logger.info(f"Spotify search returned no match for {track_name} by {artist_name}")
            return []

        result = await self.fetch_lyrics(match)
        if result.is_empty:
            self.logger.info(f"Spotify search produced empty lyrics for track {match.track_id}")
            return []

        return [
            SongResult(
                source=self.name,
                song_name=match.track_name,
                album_name=match.album_name or "",
                artist_name=match.artist_name or "",
                lines=result.lines,
            )
        ]
