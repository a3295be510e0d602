"""Error taxonomy for Salesforce calls and the streaming listener.

Every error carries the HTTP status code the API layer should answer with,
so route handlers can let them propagate untouched.
"""

from typing import Any


class SalesforceError(Exception):
    """Base class for all Salesforce bridge errors."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str, data: Any = None) -> None:
        self.message = message
        self.data = data
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to an API error body."""
        return {
            "statusCode": self.status_code,
            "error": self.error,
            "message": self.message,
        }


class ConfigurationError(SalesforceError):
    """Raised when required Salesforce configuration is missing."""


class IncompleteTokenError(ConfigurationError):
    """Raised when a token response lacks access_token or instance_url."""


class CustomerValidationError(SalesforceError):
    """Raised when a customer payload is invalid."""

    status_code = 400
    error = "Bad Request"


class UpstreamError(SalesforceError):
    """Raised when Salesforce answers with a non-success status."""

    status_code = 502
    error = "Bad Gateway"

    def __init__(
        self,
        message: str,
        status: int | None = None,
        payload: Any = None,
    ) -> None:
        self.status = status
        self.payload = payload
        super().__init__(message, data=payload)


class UpstreamAuthError(UpstreamError):
    """Raised when the OAuth token endpoint rejects the request."""


class MalformedResponseError(SalesforceError):
    """Raised when Salesforce responds with a body that is not valid JSON."""

    status_code = 502
    error = "Bad Gateway"


class HandshakeFailure(SalesforceError):
    """Raised when the CometD handshake reply reports failure."""

    status_code = 502
    error = "Bad Gateway"

    def __init__(self, message: str, reply: Any = None) -> None:
        self.reply = reply
        super().__init__(message, data=reply)


class ListenerRuntimeError(SalesforceError):
    """Post-connect listener failure. Logged, never raised to callers."""
