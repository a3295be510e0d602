"""OAuth client-credentials token exchange."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from salesforce_bridge.config import SalesforceSettings
from salesforce_bridge.errors import (
    ConfigurationError,
    IncompleteTokenError,
    UpstreamAuthError,
)
from salesforce_bridge.http.client import HttpClient, parse_json

logger = logging.getLogger(__name__)

TOKEN_PATH = "/services/oauth2/token"


@dataclass(frozen=True)
class Credentials:
    """Client credentials for the connected app."""

    base_url: str
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class AccessToken:
    """Bearer token plus the org instance it is valid for."""

    access_token: str
    instance_url: str


def load_credentials(config: SalesforceSettings) -> Credentials:
    """
    Build credentials from settings.

    Raises:
        ConfigurationError: When base URL, client id or secret is missing
    """
    if not config.base_url or not config.client_id or not config.client_secret:
        raise ConfigurationError(
            "Salesforce configuration is incomplete. "
            "Ensure base URL, client id and secret are set."
        )

    return Credentials(
        base_url=config.base_url,
        client_id=config.client_id,
        client_secret=config.client_secret,
    )


class TokenClient:
    """Exchanges client credentials for an access token."""

    def __init__(self, http_client: HttpClient | None = None) -> None:
        self._http = http_client or HttpClient()

    async def request_token(self, credentials: Credentials) -> Any:
        """
        Post the client-credentials grant and return the raw payload.

        Args:
            credentials: Connected app credentials

        Returns:
            Decoded JSON payload, or None when the body is empty

        Raises:
            UpstreamAuthError: On a non-success status
            MalformedResponseError: When the body is not valid JSON
        """
        token_url = str(httpx.URL(credentials.base_url).join(TOKEN_PATH))

        response = await self._http.post(
            token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        payload = parse_json(response)

        if not response.is_success:
            logger.warning(f"Token request failed with status {response.status_code}")
            raise UpstreamAuthError(
                "Failed to obtain Salesforce access token",
                status=response.status_code,
                payload=payload,
            )

        return payload

    async def acquire_token(self, credentials: Credentials) -> AccessToken:
        """
        Request a token and require both access_token and instance_url.

        Raises:
            IncompleteTokenError: When either field is missing
        """
        payload = await self.request_token(credentials)

        if not isinstance(payload, dict):
            payload = {}
        access_token = payload.get("access_token")
        instance_url = payload.get("instance_url")

        if not access_token or not instance_url:
            raise IncompleteTokenError(
                "Salesforce access token response missing access_token or instance_url"
            )

        return AccessToken(access_token=access_token, instance_url=instance_url)
