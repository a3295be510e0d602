"""FastAPI application for the Salesforce bridge."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from salesforce_bridge import __version__
from salesforce_bridge.api.routes import router as api_router
from salesforce_bridge.config import Settings, get_settings
from salesforce_bridge.errors import SalesforceError
from salesforce_bridge.http.client import HttpClient
from salesforce_bridge.salesforce.token import TokenClient
from salesforce_bridge.streaming.session import StreamingSessionManager

logger = logging.getLogger(__name__)


async def start_listener(manager: StreamingSessionManager) -> None:
    """Start the streaming listener, logging instead of raising on failure."""
    try:
        session = await manager.start(logger)
    except Exception as e:
        logger.error(f"Failed to start Salesforce listener: {e}", exc_info=e)
        return

    if session is None:
        logger.info("Salesforce listener not started")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    # Startup
    settings = app.state.settings_provider()
    logger.info("Server started successfully")
    logger.info(f"Access your backend on http://localhost:{settings.api_port}")
    app.state.listener_task = asyncio.create_task(start_listener(app.state.session_manager))
    yield
    # Shutdown
    logger.info("Shutting down Salesforce Bridge API...")
    await app.state.http_client.close()


def create_app(
    settings_provider: Callable[[], Settings] = get_settings,
    http_client: HttpClient | None = None,
    session_manager: StreamingSessionManager | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Salesforce Bridge",
        description="Salesforce customer API and streaming event listener",
        version=__version__,
        lifespan=lifespan,
    )

    http_client = http_client or HttpClient.from_settings(settings_provider())
    token_client = TokenClient(http_client)

    app.state.settings_provider = settings_provider
    app.state.http_client = http_client
    app.state.token_client = token_client
    app.state.session_manager = session_manager or StreamingSessionManager(
        settings_provider=settings_provider,
        token_client=token_client,
    )

    @app.exception_handler(SalesforceError)
    async def salesforce_error_handler(request: Request, exc: SalesforceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"statusCode": 400, "error": "Bad Request", "message": message},
        )

    app.include_router(api_router)

    return app


# Create app instance
app = create_app()
