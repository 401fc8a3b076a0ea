"""
Exception classes for lyric-fetcher.

This module defines every custom exception raised by the lyrics pipeline.
Each exception carries a human-readable message plus an optional details
dictionary so logs can show what went wrong without the caller having to
parse strings.

Exception Hierarchy:
    LyricFetcherError (base)
        ConfigError - Configuration file issues
        StaleTrackError - A finished fetch no longer matches the playing track
        ProviderError - Anything a single lyric provider can fail with
            PreconditionError - Rejected before any I/O
                UnsupportedPlatformError
                InvalidTimeoutError
                MissingMetadataError
            InputRejectedError - "This provider cannot help"
                LocalTrackUnsupportedError
                NoMatchError
                LyricsMissingError
            RateLimitedError
            AuthenticationError
                MissingCookieError
                SecretFetchError
                TokenGenerationError
            DecodeError
            RequestError - Network failure wrapping the underlying cause
                ProviderTimeoutError
                RequestConstructionError

Provider errors are NON-CRITICAL: the orchestrator logs them and moves on to
the next provider. Cancellation is never represented by one of these classes;
asyncio.CancelledError always propagates unchanged.
"""

from typing import Any, Dict, Optional


class LyricFetcherError(Exception):
    """
    Base exception for all lyric-fetcher errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (track id, URL,
                 HTTP status, original error...).

    Example:
        try:
            await provider.fetch_lyrics(track)
        except LyricFetcherError as e:
            logger.error(f"Fetch failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(LyricFetcherError):
    """
    Raised when the configuration is invalid.

    Common causes:
        - config.yaml has invalid YAML syntax
        - Unknown provider name in lyrics.provider_order
        - Non-positive timeout or similarity threshold outside 0-1
    """
    pass


class StaleTrackError(LyricFetcherError):
    """
    Raised internally when a completed fetch belongs to a track that is no
    longer playing.

    This is a discard condition, not a failure. LyricsSession.fetch() converts
    it into a None return value and it is never shown to the user.
    """

    def __init__(self, initiating_track_id: str, current_track_id: Optional[str]) -> None:
        super().__init__(
            f"Result for track {initiating_track_id} is stale "
            f"(now playing: {current_track_id or 'nothing'})",
            details={
                'initiating_track_id': initiating_track_id,
                'current_track_id': current_track_id,
            }
        )
        self.initiating_track_id = initiating_track_id
        self.current_track_id = current_track_id


class ProviderError(LyricFetcherError):
    """
    Base class for errors raised by a single lyric provider.

    Attributes:
        provider: Display name of the provider that raised the error.
        kind: Short machine-friendly label used in attempt logs and stats.
    """

    kind = "provider_error"

    def __init__(self, message: str, provider: str = "", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.provider = provider


# --- Precondition errors: fail fast, no I/O attempted ---

class PreconditionError(ProviderError):
    """A provider refused to start because an input precondition failed."""
    kind = "precondition"


class UnsupportedPlatformError(PreconditionError):
    """Raised when the host operating system is too old for the provider."""
    kind = "unsupported_platform"


class InvalidTimeoutError(PreconditionError):
    """Raised when a provider is called with a timeout of zero or less."""
    kind = "invalid_timeout"


class MissingMetadataError(PreconditionError):
    """Raised when track, artist or album metadata required by a provider is empty."""
    kind = "missing_metadata"


# --- Input rejection: this provider cannot help with this track ---

class InputRejectedError(ProviderError):
    """The provider cannot serve this track. Not a system fault."""
    kind = "input_rejected"


class LocalTrackUnsupportedError(InputRejectedError):
    """Raised for identifiers that do not look like streaming-service track ids."""
    kind = "local_track"


class NoMatchError(InputRejectedError):
    """Raised when the source found nothing or the similarity gate rejected the candidate."""
    kind = "no_match"


class LyricsMissingError(InputRejectedError):
    """Raised when a match exists but has no time-synchronised lyrics."""
    kind = "lyrics_missing"


# --- Transient errors ---

class RateLimitedError(ProviderError):
    """Raised when a provider reports that too many requests were made."""
    kind = "rate_limited"


class AuthenticationError(ProviderError):
    """Raised when a provider could not authenticate the request."""
    kind = "authentication"


class MissingCookieError(AuthenticationError):
    """Raised when the Spotify sp_dc cookie is not configured."""
    kind = "missing_cookie"


class SecretFetchError(AuthenticationError):
    """Raised when the remote TOTP secret document cannot be fetched or decoded."""
    kind = "secret_fetch"


class TokenGenerationError(AuthenticationError):
    """Raised when the access token request fails or returns an unusable payload."""
    kind = "token_generation"


class DecodeError(ProviderError):
    """Raised when a provider response payload is malformed."""
    kind = "decode"


class RequestError(ProviderError):
    """
    Raised when a network request fails.

    Attributes:
        underlying: The original exception (aiohttp error, TimeoutExceeded...)
                    or None when the failure was detected from the response.
    """

    kind = "request"

    def __init__(
        self,
        message: str,
        provider: str = "",
        underlying: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        details = dict(details or {})
        if underlying is not None:
            details.setdefault('original_error', str(underlying))
        super().__init__(message, provider, details)
        self.underlying = underlying


class ProviderTimeoutError(RequestError):
    """Raised when a provider network call exceeded its deadline."""
    kind = "timeout"


class RequestConstructionError(RequestError):
    """Raised when a request URL could not be assembled from the track metadata."""
    kind = "request_construction"
