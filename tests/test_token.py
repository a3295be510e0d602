"""Tests for the OAuth token client."""

from urllib.parse import parse_qs

import pytest

from conftest import BASE_URL, INSTANCE_URL, TokenEndpoint
from salesforce_bridge.config import SalesforceSettings
from salesforce_bridge.errors import (
    ConfigurationError,
    IncompleteTokenError,
    MalformedResponseError,
    UpstreamAuthError,
)
from salesforce_bridge.salesforce.token import (
    AccessToken,
    Credentials,
    TokenClient,
    load_credentials,
)

CREDENTIALS = Credentials(base_url=BASE_URL, client_id="cid", client_secret="secret")


class TestLoadCredentials:
    """Tests for building credentials from settings."""

    def test_complete_settings(self) -> None:
        """Test all three fields are copied."""
        config = SalesforceSettings(base_url=BASE_URL, client_id="cid", client_secret="s")

        credentials = load_credentials(config)

        assert credentials == Credentials(base_url=BASE_URL, client_id="cid", client_secret="s")

    @pytest.mark.parametrize("missing", ["base_url", "client_id", "client_secret"])
    def test_missing_field(self, missing: str) -> None:
        """Test any missing field is a configuration error."""
        values = {"base_url": BASE_URL, "client_id": "cid", "client_secret": "s"}
        values[missing] = None

        with pytest.raises(ConfigurationError) as exc_info:
            load_credentials(SalesforceSettings(**values))

        assert exc_info.value.status_code == 500


class TestTokenClient:
    """Tests for TokenClient."""

    @pytest.mark.asyncio
    async def test_request_shape(self, token_endpoint: TokenEndpoint) -> None:
        """Test the client-credentials form post."""
        client = TokenClient(token_endpoint.client())

        await client.request_token(CREDENTIALS)

        request = token_endpoint.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/services/oauth2/token"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert parse_qs(request.content.decode()) == {
            "grant_type": ["client_credentials"],
            "client_id": ["cid"],
            "client_secret": ["secret"],
        }

    @pytest.mark.asyncio
    async def test_base_url_path_is_replaced(self, token_endpoint: TokenEndpoint) -> None:
        """Test the token path is absolute against the base URL."""
        client = TokenClient(token_endpoint.client())
        credentials = Credentials(
            base_url=f"{BASE_URL}/some/path", client_id="cid", client_secret="secret"
        )

        await client.request_token(credentials)

        assert str(token_endpoint.requests[0].url) == f"{BASE_URL}/services/oauth2/token"

    @pytest.mark.asyncio
    async def test_acquire_token(self, token_endpoint: TokenEndpoint) -> None:
        """Test a complete payload becomes an AccessToken."""
        client = TokenClient(token_endpoint.client())

        token = await client.acquire_token(CREDENTIALS)

        assert token == AccessToken(access_token="token-abc", instance_url=INSTANCE_URL)

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self) -> None:
        """Test an empty success body yields a None payload."""
        endpoint = TokenEndpoint(content=b"")
        client = TokenClient(endpoint.client())

        assert await client.request_token(CREDENTIALS) is None

    @pytest.mark.asyncio
    async def test_empty_body_is_incomplete_token(self) -> None:
        """Test acquire_token rejects an empty body."""
        endpoint = TokenEndpoint(content=b"")
        client = TokenClient(endpoint.client())

        with pytest.raises(IncompleteTokenError):
            await client.acquire_token(CREDENTIALS)

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        """Test a non-JSON body is a malformed response."""
        endpoint = TokenEndpoint(content=b"<html>oops</html>")
        client = TokenClient(endpoint.client())

        with pytest.raises(MalformedResponseError) as exc_info:
            await client.request_token(CREDENTIALS)

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_error_status(self) -> None:
        """Test a non-success status carries status and payload."""
        payload = {"error": "invalid_client", "error_description": "bad secret"}
        endpoint = TokenEndpoint(payload=payload, status_code=400)
        client = TokenClient(endpoint.client())

        with pytest.raises(UpstreamAuthError) as exc_info:
            await client.request_token(CREDENTIALS)

        assert exc_info.value.status == 400
        assert exc_info.value.payload == payload
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_error_status_with_empty_body(self) -> None:
        """Test a failing status with no body carries a None payload."""
        endpoint = TokenEndpoint(content=b"", status_code=503)
        client = TokenClient(endpoint.client())

        with pytest.raises(UpstreamAuthError) as exc_info:
            await client.request_token(CREDENTIALS)

        assert exc_info.value.status == 503
        assert exc_info.value.payload is None

    @pytest.mark.asyncio
    async def test_error_status_with_invalid_json(self) -> None:
        """Test invalid JSON wins over the status code."""
        endpoint = TokenEndpoint(content=b"not json", status_code=500)
        client = TokenClient(endpoint.client())

        with pytest.raises(MalformedResponseError):
            await client.request_token(CREDENTIALS)
