"""Tests for the HTTP client and JSON parsing."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from salesforce_bridge.config import Settings
from salesforce_bridge.errors import MalformedResponseError
from salesforce_bridge.http.client import HttpClient, parse_json


class TestParseJson:
    """Tests for parse_json."""

    def test_object(self) -> None:
        assert parse_json(httpx.Response(200, content=b'{"a": 1}')) == {"a": 1}

    def test_empty_body(self) -> None:
        """Test empty bodies decode to None."""
        assert parse_json(httpx.Response(200, content=b"")) is None

    def test_invalid(self) -> None:
        with pytest.raises(MalformedResponseError):
            parse_json(httpx.Response(200, content=b"{nope"))


class TestHttpClient:
    """Tests for HttpClient retry behavior."""

    @pytest.mark.asyncio
    async def test_returns_error_statuses(self) -> None:
        """Test non-success responses are returned, not raised."""
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        client = HttpClient(transport=transport, max_retries=2)

        response = await client.post("https://example.com/x")

        assert response.status_code == 500
        await client.close()

    @pytest.mark.asyncio
    async def test_retries_connect_errors(self) -> None:
        """Test connect errors are retried with backoff."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, content=b"{}")

        client = HttpClient(transport=httpx.MockTransport(handler), max_retries=3)

        with patch("salesforce_bridge.http.client.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await client.post("https://example.com/x")

        assert response.status_code == 200
        assert len(calls) == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]
        await client.close()

    @pytest.mark.asyncio
    async def test_retries_exhausted(self) -> None:
        """Test the last connect error is raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = HttpClient(transport=httpx.MockTransport(handler), max_retries=1)

        with patch("salesforce_bridge.http.client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.ConnectError):
                await client.post("https://example.com/x")

        await client.close()

    def test_from_settings(self) -> None:
        """Test timeouts and retries come from settings."""
        settings = Settings(http_timeout_connect=3.0, http_timeout_read=7.0, http_max_retries=5)

        client = HttpClient.from_settings(settings)

        assert client._timeout.connect == 3.0
        assert client._timeout.read == 7.0
        assert client._max_retries == 5

    @pytest.mark.asyncio
    async def test_read_timeout_raised_without_retry(self) -> None:
        """Test read timeouts are raised on the first attempt."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        client = HttpClient(transport=httpx.MockTransport(handler), max_retries=3)

        with patch("salesforce_bridge.http.client.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(httpx.ReadTimeout):
                await client.post("https://example.com/x")

        assert len(calls) == 1
        sleep.assert_not_called()
        await client.close()

    @pytest.mark.asyncio
    async def test_retries_connect_timeout(self) -> None:
        """Test connect timeouts are retried, the request never left."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectTimeout("no route", request=request)
            return httpx.Response(200)

        client = HttpClient(transport=httpx.MockTransport(handler), max_retries=1)

        with patch("salesforce_bridge.http.client.asyncio.sleep", new=AsyncMock()):
            response = await client.post("https://example.com/x")

        assert response.status_code == 200
        assert len(calls) == 2
        await client.close()
