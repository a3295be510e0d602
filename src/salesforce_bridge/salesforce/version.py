"""API version normalization and streaming endpoint construction."""

DEFAULT_STREAMING_API_VERSION = "v61.0"


def normalize_api_version(
    version: str | None,
    default: str = DEFAULT_STREAMING_API_VERSION,
) -> str:
    """
    Normalize an API version to the "vNN.N" form.

    "58.0" -> "v58.0", "/v59.0" -> "v59.0"; None, "" and "/" -> default.
    """
    if version and version.startswith("/"):
        version = version[1:]

    if not version:
        return default

    if version.startswith("v"):
        return version
    return f"v{version}"


def build_streaming_url(instance_url: str, version: str) -> str:
    """Build the CometD endpoint for an org instance."""
    return f"{instance_url}/cometd/{version}/"
