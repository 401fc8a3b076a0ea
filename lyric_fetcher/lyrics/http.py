"""
HTTP transport shared by the lyric providers

A thin wrapper around aiohttp that gives every provider:
- its own lazily created ClientSession with provider-specific default headers
- request pacing through asyncio-throttle
- responses read fully into an immutable HttpResponse

Network failures are reported as RequestError so providers only deal with
the lyric-fetcher error hierarchy. Deadlines are not handled here; callers
wrap requests with run_with_timeout().
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp
from asyncio_throttle import Throttler

from ..utils.logger import get_logger
from .exceptions import RequestError

logger = get_logger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """
    Fully read HTTP response

    Attributes:
        status: HTTP status code
        body: Raw response body
        url: Final request URL
    """
    status: int
    body: bytes
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        """
        Decode the body as JSON

        Raises:
            ValueError: If the body is not valid JSON
        """
        return json.loads(self.body.decode('utf-8'))


class HttpClient:
    """
    Throttled aiohttp client owned by one provider

    The underlying session is created on first use and must be released with
    close() (or by using the client as an async context manager).
    """

    def __init__(
        self,
        name: str,
        headers: Optional[Dict[str, str]] = None,
        rate_limit: int = 5,
        rate_limit_period: float = 1.0
    ):
        """
        Initialize the client

        Args:
            name: Provider name used in logs and errors
            headers: Default headers sent with every request (User-Agent etc.)
            rate_limit: Maximum number of requests per period
            rate_limit_period: Length of the pacing window in seconds
        """
        self.name = name
        self.headers = dict(headers or {})
        self._throttler = Throttler(rate_limit=rate_limit, period=rate_limit_period)
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None
    ) -> HttpResponse:
        """
        Perform a request and read the whole body

        Args:
            method: HTTP method
            url: Fully built request URL (query string included)
            headers: Extra headers for this request only
            json_body: Optional JSON payload

        Returns:
            HttpResponse with status and body, for every status code

        Raises:
            RequestError: On connection or protocol errors
        """
        session = self._get_session()
        logger.debug(f"{self.name}: {method} {url}")

        async with self._throttler:
            try:
                async with session.request(method, url, headers=headers, json=json_body) as response:
                    body = await response.read()
                    return HttpResponse(status=response.status, body=body, url=str(response.url))
            except aiohttp.ClientError as e:
                logger.debug(f"{self.name}: {method} {url} failed: {e}")
                raise RequestError(
                    f"{self.name} request failed: {e}",
                    provider=self.name,
                    underlying=e,
                    details={'url': url, 'method': method}
                ) from e

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> HttpResponse:
        return await self.request('GET', url, headers=headers)

    async def post(
        self,
        url: str,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> HttpResponse:
        return await self.request('POST', url, headers=headers, json_body=json_body)

    async def close(self) -> None:
        """Close the underlying session if one was opened."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
