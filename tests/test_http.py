# tests/test_http.py
"""Test the HTTP transport wrapper"""

from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from lyric_fetcher.lyrics.exceptions import RequestError
from lyric_fetcher.lyrics.http import HttpClient, HttpResponse


class TestHttpResponse:
    """Test HttpResponse helpers"""

    def test_ok_range(self):
        assert HttpResponse(200, b"").ok
        assert HttpResponse(204, b"").ok
        assert not HttpResponse(404, b"").ok
        assert not HttpResponse(500, b"").ok

    def test_json_and_text(self):
        response = HttpResponse(200, '{"name": "Lemon"}'.encode('utf-8'))
        assert response.json() == {"name": "Lemon"}
        assert response.text() == '{"name": "Lemon"}'

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            HttpResponse(200, b"<html>").json()


class TestHttpClient:
    """Test HttpClient error mapping and lifecycle"""

    @pytest.mark.asyncio
    async def test_client_error_becomes_request_error(self):
        client = HttpClient("LRCLIB", rate_limit=100)
        session = Mock()
        session.request.side_effect = aiohttp.ClientConnectionError("connection refused")

        with patch.object(client, '_get_session', return_value=session):
            with pytest.raises(RequestError) as exc_info:
                await client.get("https://lrclib.net/api/get?track_name=x")

        error = exc_info.value
        assert error.provider == "LRCLIB"
        assert isinstance(error.underlying, aiohttp.ClientConnectionError)
        assert error.details['url'] == "https://lrclib.net/api/get?track_name=x"
        assert error.details['method'] == "GET"

    @pytest.mark.asyncio
    async def test_close_without_session(self):
        client = HttpClient("NetEase")
        await client.close()
        assert client._session is None

    @pytest.mark.asyncio
    async def test_close_releases_session(self):
        client = HttpClient("Spotify", headers={'User-Agent': 'test'})
        session = Mock(closed=False)
        session.close = AsyncMock()
        client._session = session

        async with client:
            pass

        session.close.assert_awaited_once()
        assert client._session is None
