"""Configuration module using Pydantic Settings."""

from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class SalesforceSettings(BaseModel):
    """Salesforce connection and listener settings."""

    base_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    # Streaming listener
    listener_enabled: bool = False
    streaming_channel: str | None = None  # e.g. /event/Customer__e
    api_version: str | None = None  # Streaming API version, "58.0" or "v58.0"

    # REST API version used for sobject calls
    rest_api_version: str = "v58.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    salesforce: SalesforceSettings = SalesforceSettings()

    # HTTP Client
    http_timeout_connect: float = 10.0
    http_timeout_read: float = 30.0
    http_max_retries: int = 3

    # Logging
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 3000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function for quick access
settings = get_settings()
