"""Pytest configuration and fixtures."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from salesforce_bridge.config import SalesforceSettings, Settings
from salesforce_bridge.http.client import HttpClient
from salesforce_bridge.streaming.transport import StreamingTransport

BASE_URL = "https://login.example.my.salesforce.com"
INSTANCE_URL = "https://org.example.my.salesforce.com"
CHANNEL = "/event/Customer_Created__e"


def make_settings(**overrides: Any) -> Settings:
    """Build settings with a complete Salesforce section."""
    values: dict[str, Any] = {
        "base_url": BASE_URL,
        "client_id": "client-id",
        "client_secret": "client-secret",
        "listener_enabled": True,
        "streaming_channel": CHANNEL,
        "api_version": "58.0",
    }
    values.update(overrides)
    return Settings(salesforce=SalesforceSettings(**values))


class FakeTransport(StreamingTransport):
    """In-memory transport recording every call."""

    def __init__(
        self,
        handshake_reply: dict[str, Any] | None = None,
        handshake_delay: float = 0.0,
        subscribe_reply: dict[str, Any] | None = None,
    ) -> None:
        self.handshake_reply = handshake_reply or {
            "channel": "/meta/handshake",
            "successful": True,
            "clientId": "client-123",
        }
        self.handshake_delay = handshake_delay
        self.subscribe_reply = subscribe_reply
        self.configured: dict[str, Any] | None = None
        self.handshake_calls = 0
        self.listeners: dict[str, list[Callable]] = {}
        self.subscriptions: list[tuple[str, Callable]] = []
        self.disconnected = False

    def configure(
        self,
        url,
        request_headers=None,
        append_message_type_to_url=True,
        connection_types=("long-polling",),
    ) -> None:
        self.configured = {
            "url": url,
            "request_headers": request_headers,
            "append_message_type_to_url": append_message_type_to_url,
            "connection_types": tuple(connection_types),
        }

    async def handshake(self) -> dict[str, Any]:
        self.handshake_calls += 1
        await asyncio.sleep(self.handshake_delay)
        return self.handshake_reply

    def add_listener(self, channel, callback) -> None:
        self.listeners.setdefault(channel, []).append(callback)

    async def subscribe(self, channel, callback) -> dict[str, Any]:
        self.subscriptions.append((channel, callback))
        return self.subscribe_reply or {
            "channel": "/meta/subscribe",
            "successful": True,
            "subscription": channel,
        }

    async def disconnect(self) -> None:
        self.disconnected = True


class TokenEndpoint:
    """httpx handler faking the OAuth token endpoint."""

    def __init__(
        self,
        payload: Any = None,
        status_code: int = 200,
        content: bytes | None = None,
    ) -> None:
        self.payload = payload if payload is not None else {
            "access_token": "token-abc",
            "instance_url": INSTANCE_URL,
            "token_type": "Bearer",
        }
        self.status_code = status_code
        self.content = content
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, content=json.dumps(self.payload).encode())

    def client(self) -> HttpClient:
        return HttpClient(transport=httpx.MockTransport(self), max_retries=0)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()
