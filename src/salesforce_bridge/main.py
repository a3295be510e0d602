"""Main entry point for the Salesforce bridge."""

import logging

import uvicorn

from salesforce_bridge.api.app import app
from salesforce_bridge.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Run the API server; the listener starts from the app lifespan."""
    logger.info("Starting Salesforce Bridge...")
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
