"""Salesforce REST and OAuth clients."""

from salesforce_bridge.salesforce.customer import CustomerResult, CustomerService
from salesforce_bridge.salesforce.token import (
    AccessToken,
    Credentials,
    TokenClient,
    load_credentials,
)
from salesforce_bridge.salesforce.version import (
    DEFAULT_STREAMING_API_VERSION,
    build_streaming_url,
    normalize_api_version,
)

__all__ = [
    "AccessToken",
    "Credentials",
    "CustomerResult",
    "CustomerService",
    "DEFAULT_STREAMING_API_VERSION",
    "TokenClient",
    "build_streaming_url",
    "load_credentials",
    "normalize_api_version",
]
