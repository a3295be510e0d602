"""Salesforce Contact creation over the REST API."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from salesforce_bridge.config import SalesforceSettings
from salesforce_bridge.errors import (
    ConfigurationError,
    CustomerValidationError,
    UpstreamError,
)
from salesforce_bridge.http.client import HttpClient, parse_json
from salesforce_bridge.salesforce.token import load_credentials
from salesforce_bridge.salesforce.version import normalize_api_version

logger = logging.getLogger(__name__)


@dataclass
class CustomerResult:
    """Salesforce response to a create call."""

    body: Any
    status: int


class CustomerService:
    """Creates customers as Salesforce Contact records."""

    def __init__(
        self,
        config: SalesforceSettings,
        http_client: HttpClient | None = None,
    ) -> None:
        self._config = config
        self._http = http_client or HttpClient()

    def contact_url(self) -> str:
        """Absolute URL of the Contact sobject endpoint."""
        credentials = load_credentials(self._config)
        version = normalize_api_version(self._config.rest_api_version)
        path = f"/services/data/{version}/sobjects/Contact"
        return str(httpx.URL(credentials.base_url).join(path))

    async def create_customer(
        self,
        payload: dict[str, Any],
        access_token: str | None,
    ) -> CustomerResult:
        """
        Create a Contact from a customer payload.

        Args:
            payload: Customer fields, requires "lastName"
            access_token: Bearer token from the token endpoint

        Returns:
            CustomerResult with Salesforce's body and status

        Raises:
            ConfigurationError: When configuration or token is missing
            CustomerValidationError: When lastName is missing
            UpstreamError: On a non-success status
        """
        url = self.contact_url()

        if not access_token:
            raise ConfigurationError("Missing Salesforce access token")

        last_name = (payload or {}).get("lastName")
        if not last_name:
            raise CustomerValidationError(
                "lastName is required to create a Salesforce customer"
            )

        response = await self._http.post(
            url,
            json={"LastName": last_name},
            headers={"Authorization": f"Bearer {access_token}"},
        )

        body = parse_json(response)

        if not response.is_success:
            raise UpstreamError(
                "Failed to create Salesforce customer",
                status=response.status_code,
                payload=body,
            )

        logger.info(f"Created Salesforce customer (status {response.status_code})")
        return CustomerResult(body=body, status=response.status_code)
