"""
Provider contract and collaborator interfaces for the lyrics pipeline

LyricProvider is the abstract base every lyric source implements. It owns
the shared plumbing: configuration, logging, the throttled HTTP client, the
platform and timeout preconditions, and the translation of timeout-executor
errors into provider errors.

The Protocol classes describe the collaborators the pipeline talks to but
does not implement: the lyric cache, the host media player and the colour
consumer. MemoryLyricCache is a small in-process cache for embedding
applications that have no persistent store.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar, runtime_checkable

from ..config.settings import Settings, get_settings
from ..utils.helpers import is_supported_platform
from ..utils.logger import get_logger
from .exceptions import (
    DecodeError,
    InvalidTimeoutError,
    ProviderTimeoutError,
    UnsupportedPlatformError,
)
from .http import HttpClient, HttpResponse
from .models import LyricResult, ProviderIdentity, SongResult, TrackReference
from .timeout import InvalidTimeout, TimeoutExceeded, run_with_timeout

T = TypeVar("T")


@runtime_checkable
class LyricCache(Protocol):
    """Persistent lyric store keyed by track id"""

    def lookup(self, track_id: str) -> Optional[LyricResult]:
        ...

    def store(self, track_id: str, result: LyricResult) -> None:
        ...


@runtime_checkable
class PlayerState(Protocol):
    """Read-only view of the host media player"""

    @property
    def current_track_id(self) -> Optional[str]:
        ...

    @property
    def current_playback_duration_ms(self) -> Optional[float]:
        ...

    @property
    def current_playback_position_ms(self) -> Optional[float]:
        ...


class ColorConsumer(Protocol):
    """Receives the colour hint of a freshly fetched result"""

    async def __call__(self, track_id: str, color_hint: Optional[int]) -> None:
        ...


class MemoryLyricCache:
    """
    In-process LyricCache implementation

    Keeps up to max_entries results and evicts the least recently used one
    when full.
    """

    def __init__(self, max_entries: int = 256):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, LyricResult]" = OrderedDict()

    def lookup(self, track_id: str) -> Optional[LyricResult]:
        result = self._entries.get(track_id)
        if result is not None:
            self._entries.move_to_end(track_id)
        return result

    def store(self, track_id: str, result: LyricResult) -> None:
        self._entries[track_id] = result
        self._entries.move_to_end(track_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._entries


class LyricProvider(ABC):
    """
    Base class for a single lyric source

    Subclasses implement fetch_lyrics() and search(). Every network call must
    go through _bounded() (or the _get()/_post() shortcuts) so that it is
    covered by the per-call deadline.

    Error contract:
    - Preconditions (platform, timeout, metadata) fail before any I/O
    - Failures are raised as ProviderError subclasses
    - asyncio.CancelledError is never caught or converted
    """

    identity: ProviderIdentity

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[HttpClient] = None,
        timeout: Optional[float] = None,
        platform_check: Optional[Callable[[], bool]] = None
    ):
        """
        Initialize shared provider state

        Args:
            settings: Settings to use (defaults to the global settings)
            http_client: Transport to use (defaults to a client built by _create_http_client)
            timeout: Per-call deadline in seconds (defaults to lyrics.timeout)
            platform_check: Callable returning whether the host OS is supported
        """
        self.settings = settings or get_settings()
        self.logger = get_logger(self.__class__.__module__)

        self.timeout = self.settings.lyrics.timeout if timeout is None else timeout
        self.platform_check = platform_check or is_supported_platform
        self.http = http_client or self._create_http_client()

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def user_agent(self) -> str:
        """User-Agent header sent by this provider's default HTTP client."""
        return ""

    def _create_http_client(self) -> HttpClient:
        headers = {'User-Agent': self.user_agent} if self.user_agent else {}
        return HttpClient(
            self.name,
            headers=headers,
            rate_limit=self.settings.network.rate_limit,
            rate_limit_period=self.settings.network.rate_limit_period
        )

    @abstractmethod
    async def fetch_lyrics(self, track: TrackReference, timeout: Optional[float] = None) -> LyricResult:
        """
        Fetch time-synchronised lyrics for a track

        Args:
            track: Track to fetch lyrics for
            timeout: Per-call deadline override in seconds

        Returns:
            LyricResult, possibly empty when the source has nothing

        Raises:
            ProviderError: On any provider failure
        """

    @abstractmethod
    async def search(self, track_name: str, artist_name: str) -> List[SongResult]:
        """
        Search the source for candidate songs

        Returns:
            Candidates with their full lyrics, possibly empty
        """

    def _resolve_timeout(self, timeout: Optional[float]) -> float:
        return self.timeout if timeout is None else timeout

    def _check_preconditions(self, timeout: float) -> None:
        """
        Check the platform and timeout preconditions

        Raises:
            UnsupportedPlatformError: If the host OS is too old
            InvalidTimeoutError: If timeout <= 0
        """
        if not self.platform_check():
            self.logger.error(f"{self.name} lyrics requested on an unsupported operating system")
            raise UnsupportedPlatformError(
                f"{self.name} lyrics require macOS Sonoma (14.0) or newer",
                provider=self.name
            )

        if timeout <= 0:
            self.logger.error(f"{self.name} called with invalid timeout: {timeout}s")
            raise InvalidTimeoutError(
                f"Timeout must be greater than zero seconds (got {timeout})",
                provider=self.name,
                details={'timeout': timeout}
            )

    async def _bounded(self, seconds: float, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run a network operation under the deadline

        Raises:
            InvalidTimeoutError: If seconds <= 0
            ProviderTimeoutError: If the deadline passed
        """
        try:
            return await run_with_timeout(seconds, operation)
        except InvalidTimeout as e:
            raise InvalidTimeoutError(str(e), provider=self.name) from e
        except TimeoutExceeded as e:
            self.logger.warning(f"{self.name} request timed out after {seconds}s")
            raise ProviderTimeoutError(
                f"{self.name} request timed out after {seconds}s",
                provider=self.name,
                underlying=e,
                details={'timeout': seconds}
            ) from e

    async def _get(self, url: str, seconds: float, headers: Optional[dict] = None) -> HttpResponse:
        return await self._bounded(seconds, lambda: self.http.get(url, headers=headers))

    async def _post(self, url: str, seconds: float, json_body: Optional[dict] = None,
                    headers: Optional[dict] = None) -> HttpResponse:
        return await self._bounded(seconds, lambda: self.http.post(url, json_body=json_body, headers=headers))

    def _decode_json(self, response: HttpResponse, what: str = "response"):
        """
        Decode a JSON body

        Raises:
            DecodeError: If the body is not valid JSON
        """
        try:
            return response.json()
        except ValueError as e:
            self.logger.error(f"Failed to decode {self.name} {what}: {e}")
            raise DecodeError(
                f"Unable to decode {self.name} {what}",
                provider=self.name,
                details={'status': response.status, 'url': response.url, 'original_error': str(e)}
            ) from e

    async def close(self) -> None:
        """Release the HTTP client."""
        await self.http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, timeout={self.timeout})"
