"""HTTP client with retry logic, timeouts, and JSON body parsing."""

import asyncio
import json
import logging
from typing import Any

import httpx

from salesforce_bridge.errors import MalformedResponseError

logger = logging.getLogger(__name__)


def parse_json(response: httpx.Response) -> Any:
    """
    Parse a response body as JSON.

    Args:
        response: The response to parse

    Returns:
        Decoded payload, or None for an empty body

    Raises:
        MalformedResponseError: When the body is not valid JSON
    """
    text = response.text
    if not text:
        return None

    try:
        return json.loads(text)
    except ValueError as e:
        raise MalformedResponseError("Salesforce responded with invalid JSON") from e


class HttpClient:
    """
    Async HTTP client with timeouts and connection retry.

    Uses httpx for async HTTP requests with exponential backoff on
    connection errors. Read and write timeouts are raised at once since
    the server may already have acted on the request. Responses are
    returned whatever their status code; mapping statuses to errors is
    left to callers.
    """

    DEFAULT_TIMEOUT = httpx.Timeout(
        connect=10.0,
        read=30.0,
        write=10.0,
        pool=10.0,
    )

    # Raised before the request is sent, so retrying cannot duplicate a POST
    RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)

    def __init__(
        self,
        base_url: str | None = None,
        timeout: httpx.Timeout | None = None,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the HTTP client.

        Args:
            base_url: Optional base URL for all requests
            timeout: Request timeout configuration
            max_retries: Maximum retry attempts on connect errors
            backoff_factor: Exponential backoff multiplier
            headers: Default headers for all requests
            transport: Optional httpx transport (used by tests)
        """
        self._base_url = base_url
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        self._default_headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "HttpClient":
        """Build a client using the timeout and retry settings."""
        timeout = httpx.Timeout(
            connect=settings.http_timeout_connect,
            read=settings.http_timeout_read,
            write=10.0,
            pool=10.0,
        )
        return cls(timeout=timeout, max_retries=settings.http_max_retries, **kwargs)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url or "",
                timeout=self._timeout,
                headers=self._default_headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        return self._backoff_factor * (2**attempt)

    async def request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            **kwargs: Additional arguments for httpx

        Returns:
            httpx.Response

        Raises:
            httpx.ConnectError: When retries are exhausted on connect errors
            httpx.TimeoutException: On read or write timeouts, never retried
        """
        client = await self._get_client()

        for attempt in range(self._max_retries + 1):
            try:
                return await client.request(method, url, **kwargs)

            except self.RETRYABLE_ERRORS as e:
                if attempt < self._max_retries:
                    backoff = self._calculate_backoff(attempt)
                    logger.warning(
                        f"{type(e).__name__} on {method} {url}. "
                        f"Retrying in {backoff}s (attempt {attempt + 1})"
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise

        raise RuntimeError("Unexpected retry loop exit")

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Make a POST request."""
        return await self.request("POST", url, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
