"""
Streaming session lifecycle for the Salesforce listener.

The manager turns configuration, an OAuth token and a Bayeux transport
into one live subscription per process. Concurrent start() calls share
a single in-flight attempt; a failed attempt resets the registry so the
next call starts over.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from salesforce_bridge.config import SalesforceSettings, Settings, get_settings
from salesforce_bridge.errors import (
    ConfigurationError,
    HandshakeFailure,
    ListenerRuntimeError,
)
from salesforce_bridge.salesforce.token import TokenClient, load_credentials
from salesforce_bridge.salesforce.version import (
    build_streaming_url,
    normalize_api_version,
)
from salesforce_bridge.streaming.bayeux import LONG_POLLING, BayeuxClient
from salesforce_bridge.streaming.transport import (
    ListenerLogger,
    Message,
    MessageCallback,
    StreamingTransport,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Streaming session states."""

    IDLE = "idle"
    STARTING = "starting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True)
class ListenerConfig:
    """Listener switches, read on every start() call."""

    enabled: bool
    channel: str | None
    api_version: str | None

    @classmethod
    def from_settings(cls, config: SalesforceSettings) -> ListenerConfig:
        return cls(
            enabled=config.listener_enabled,
            channel=config.streaming_channel,
            api_version=config.api_version,
        )


@dataclass
class Subscription:
    """An active channel subscription."""

    channel: str
    on_message: MessageCallback


@dataclass
class StreamingSession:
    """Handle to a live streaming session."""

    transport: StreamingTransport
    channel: str
    endpoint: str
    handshake: Message
    subscription: Subscription | None = None
    connected_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "channel": self.channel,
            "endpoint": self.endpoint,
            "client_id": self.handshake.get("clientId"),
            "subscribed": self.subscription is not None,
            "connected_at": self.connected_at,
        }


class SessionRegistry:
    """
    Owner of the process-wide session state.

    Only StreamingSessionManager mutates it, always while holding lock.
    """

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.state = SessionState.IDLE
        self.session: StreamingSession | None = None
        self.attempt: asyncio.Task[StreamingSession] | None = None
        self.transport: StreamingTransport | None = None


class StreamingSessionManager:
    """
    Starts the Salesforce streaming listener at most once.

    start() resolves configuration and token, configures the transport,
    performs the handshake, registers meta-channel observers and
    subscribes to the configured channel.
    """

    def __init__(
        self,
        settings_provider: Callable[[], Settings] = get_settings,
        token_client: TokenClient | None = None,
        transport_factory: Callable[[], StreamingTransport] = BayeuxClient,
        registry: SessionRegistry | None = None,
    ) -> None:
        """
        Initialize the manager.

        Args:
            settings_provider: Returns current settings on every call
            token_client: OAuth token client
            transport_factory: Builds a fresh transport per attempt
            registry: Session state owner (a new one if omitted)
        """
        self._settings_provider = settings_provider
        self._token_client = token_client or TokenClient()
        self._transport_factory = transport_factory
        self._registry = registry or SessionRegistry()

    @property
    def state(self) -> SessionState:
        return self._registry.state

    @property
    def session(self) -> StreamingSession | None:
        return self._registry.session

    async def start(self, log: ListenerLogger | None = None) -> StreamingSession | None:
        """
        Start the listener, or join the attempt already in flight.

        Args:
            log: Log sink for listener events (module logger by default)

        Returns:
            The live session, or None when the listener is disabled or
            has no channel configured

        Raises:
            SalesforceError: When the attempt fails before or during handshake
        """
        log = log or logger
        config = self._settings_provider().salesforce
        listener = ListenerConfig.from_settings(config)

        if not listener.enabled:
            return None

        if not listener.channel:
            log.warning(
                "Salesforce listener is enabled but no channel is configured; "
                "skipping subscription"
            )
            return None

        async with self._registry.lock:
            if self._registry.state == SessionState.CONNECTED and self._registry.session:
                return self._registry.session

            if self._registry.attempt is None:
                self._registry.state = SessionState.STARTING
                self._registry.attempt = asyncio.create_task(
                    self._run_attempt(config, listener, log)
                )
            attempt = self._registry.attempt

        # Shielded so a cancelled caller does not abort the shared attempt
        return await asyncio.shield(attempt)

    async def _run_attempt(
        self,
        config: SalesforceSettings,
        listener: ListenerConfig,
        log: ListenerLogger,
    ) -> StreamingSession:
        try:
            session = await self._establish(config, listener, log)
        except Exception:
            await self._reset_after_failure(log)
            raise

        self._register_observers(session, log)
        await self._subscribe(session, log)

        async with self._registry.lock:
            self._registry.state = SessionState.CONNECTED
            self._registry.session = session
            self._registry.attempt = None
        return session

    async def _establish(
        self,
        config: SalesforceSettings,
        listener: ListenerConfig,
        log: ListenerLogger,
    ) -> StreamingSession:
        """Token, endpoint, transport configuration and handshake."""
        if not listener.channel:
            raise ConfigurationError("Salesforce streaming channel is not configured")

        credentials = load_credentials(config)
        token = await self._token_client.acquire_token(credentials)

        version = normalize_api_version(listener.api_version)
        endpoint = build_streaming_url(token.instance_url, version)

        transport = self._transport_factory()
        async with self._registry.lock:
            self._registry.transport = transport

        transport.configure(
            url=endpoint,
            request_headers={"Authorization": f"Bearer {token.access_token}"},
            append_message_type_to_url=False,
            # The Streaming API rejects websocket connections
            connection_types=(LONG_POLLING,),
        )

        reply = await transport.handshake()
        if not reply or not reply.get("successful"):
            raise HandshakeFailure("Salesforce CometD handshake failed", reply=reply)

        log.info(
            f"Salesforce listener connected to {endpoint}",
            extra={"handshake": reply, "channel": listener.channel},
        )

        return StreamingSession(
            transport=transport,
            channel=listener.channel,
            endpoint=endpoint,
            handshake=reply,
        )

    async def _reset_after_failure(self, log: ListenerLogger) -> None:
        async with self._registry.lock:
            self._registry.state = SessionState.FAILED
            transport = self._registry.transport
            self._registry.transport = None
            self._registry.session = None
            self._registry.attempt = None
            self._registry.state = SessionState.IDLE

        if transport is not None:
            try:
                await transport.disconnect()
            except Exception as e:
                log.warning(f"Failed to release streaming transport: {e}")

    def _register_observers(self, session: StreamingSession, log: ListenerLogger) -> None:
        transport = session.transport

        def on_disconnect(message: Message) -> None:
            log.warning("Salesforce listener disconnected", extra={"bayeux_message": message})

        def on_connect(message: Message) -> None:
            if not message.get("successful"):
                error = ListenerRuntimeError("Salesforce listener connect error", data=message)
                log.error(error.message, extra={"bayeux_message": message})

        def on_exception(exception: BaseException, channel: str, message: Message) -> None:
            log.error(
                f"Salesforce listener exception: {exception}",
                exc_info=exception,
                extra={"subscription_channel": channel, "bayeux_message": message},
            )

        try:
            transport.add_listener("/meta/disconnect", on_disconnect)
            transport.add_listener("/meta/connect", on_connect)
            transport.on_listener_exception = on_exception
        except Exception as e:
            error = ListenerRuntimeError(f"Failed to register listener observers: {e}")
            log.error(error.message, exc_info=e)

    async def _subscribe(self, session: StreamingSession, log: ListenerLogger) -> None:
        def on_message(message: Message) -> None:
            log.info(
                "Event received and processed: "
                f"{json.dumps(message, indent=2, default=str)}"
            )

        try:
            reply = await session.transport.subscribe(session.channel, on_message)
        except Exception as e:
            error = ListenerRuntimeError(f"Failed to subscribe to {session.channel}: {e}")
            log.error(error.message, exc_info=e)
            return

        if reply is not None and not reply.get("successful", True):
            log.error(
                f"Salesforce rejected subscription to {session.channel}",
                extra={"bayeux_message": reply},
            )
            return

        session.subscription = Subscription(channel=session.channel, on_message=on_message)
