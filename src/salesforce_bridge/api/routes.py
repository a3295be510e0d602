"""API routes for the Salesforce bridge."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from salesforce_bridge import __version__
from salesforce_bridge.config import Settings
from salesforce_bridge.salesforce.customer import CustomerService
from salesforce_bridge.salesforce.token import TokenClient, load_credentials
from salesforce_bridge.streaming.session import StreamingSessionManager

logger = logging.getLogger(__name__)
router = APIRouter()


# --- Request Models ---

class CustomerRequest(BaseModel):
    """Customer creation request."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    lastName: str = Field(..., min_length=1, description="Contact last name")


class CustomerV2Request(BaseModel):
    """Customer v2 request."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    message: str = Field(..., min_length=1)


# --- Dependencies ---

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings_provider()


def get_token_client(request: Request) -> TokenClient:
    return request.app.state.token_client


def get_customer_service(request: Request) -> CustomerService:
    settings = request.app.state.settings_provider()
    return CustomerService(settings.salesforce, http_client=request.app.state.http_client)


def get_session_manager(request: Request) -> StreamingSessionManager:
    return request.app.state.session_manager


# --- Routes ---

@router.get("/health")
async def health_check(
    manager: StreamingSessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    """Health check including the listener state."""
    session = manager.session
    return {
        "status": "healthy",
        "version": __version__,
        "listener": {
            "state": manager.state.value,
            "session": session.to_dict() if session else None,
        },
    }


@router.post("/customer")
async def create_customer(
    body: CustomerRequest,
    settings: Settings = Depends(get_app_settings),
    token_client: TokenClient = Depends(get_token_client),
    customers: CustomerService = Depends(get_customer_service),
) -> JSONResponse:
    """Create a Salesforce Contact and relay Salesforce's response."""
    credentials = load_credentials(settings.salesforce)
    payload = await token_client.request_token(credentials)
    access_token = payload.get("access_token") if isinstance(payload, dict) else None

    result = await customers.create_customer(body.model_dump(), access_token)
    return JSONResponse(content=result.body, status_code=result.status)


@router.post("/customerv2")
async def create_customer_v2(body: CustomerV2Request) -> dict[str, str]:
    return {"message": "Hi"}
