"""
Bayeux (CometD) long-polling client built on httpx.

Implements the client side of the Bayeux protocol as used by the
Salesforce Streaming API:
- /meta/handshake, /meta/connect, /meta/subscribe and /meta/disconnect
- A background connect loop that holds long-poll requests open
- Server advice handling (retry, handshake, none) with incremental backoff
- Channel listeners and subscriptions with exception routing
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from salesforce_bridge.streaming.transport import (
    ExceptionHandler,
    Message,
    MessageCallback,
    StreamingTransport,
)

logger = logging.getLogger(__name__)

LONG_POLLING = "long-polling"


class ClientStatus(str, Enum):
    """Bayeux client states."""

    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


@dataclass(frozen=True)
class ListenerHandle:
    """Returned by add_listener; identifies one registered callback."""

    channel: str
    callback: MessageCallback


class BayeuxClient(StreamingTransport):
    """
    Long-polling Bayeux client.

    Only the long-polling connection type is implemented. The
    Salesforce Streaming API does not accept websocket connections.
    """

    BAYEUX_VERSION = "1.0"
    SUPPORTED_CONNECTION_TYPES = (LONG_POLLING,)

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_increment: float = 1.0,
        max_backoff: float = 60.0,
        max_network_delay: float = 10.0,
    ) -> None:
        """
        Initialize the client.

        Args:
            transport: Optional httpx transport (used by tests)
            backoff_increment: Seconds added to the delay after each failure
            max_backoff: Upper bound for the reconnect delay in seconds
            max_network_delay: Slack added to the server's long-poll timeout
        """
        self._transport = transport
        self._backoff_increment = backoff_increment
        self._max_backoff = max_backoff
        self._max_network_delay = max_network_delay

        self._url: str | None = None
        self._headers: dict[str, str] = {}
        self._append_message_type = True
        self._connection_types: list[str] = [LONG_POLLING]

        self._http: httpx.AsyncClient | None = None
        self._client_id: str | None = None
        self._message_id = 0
        self._status = ClientStatus.DISCONNECTED
        self._stopping = False
        self._advice: dict[str, Any] = {"reconnect": "retry", "interval": 0, "timeout": 60000}
        self._backoff = 0.0
        self._connect_task: asyncio.Task | None = None

        self._listeners: dict[str, list[MessageCallback]] = {}
        self._subscriptions: dict[str, list[MessageCallback]] = {}
        self.on_listener_exception: ExceptionHandler | None = None

    @property
    def client_id(self) -> str | None:
        """Client id assigned by the server at handshake."""
        return self._client_id

    @property
    def status(self) -> ClientStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ClientStatus.CONNECTED

    @property
    def connection_types(self) -> list[str]:
        return list(self._connection_types)

    def configure(
        self,
        url: str,
        request_headers: dict[str, str] | None = None,
        append_message_type_to_url: bool = True,
        connection_types: Sequence[str] = (LONG_POLLING,),
    ) -> None:
        """
        Configure the endpoint.

        Args:
            url: Bayeux endpoint URL
            request_headers: Headers sent with every request
            append_message_type_to_url: Append "/handshake", "/connect", ...
                to the URL for meta messages
            connection_types: Allowed connection types

        Raises:
            ValueError: For an unsupported connection type such as websocket
        """
        unsupported = [t for t in connection_types if t not in self.SUPPORTED_CONNECTION_TYPES]
        if unsupported or not connection_types:
            raise ValueError(
                f"Unsupported connection types {unsupported}; "
                f"only {list(self.SUPPORTED_CONNECTION_TYPES)} is available"
            )

        self._url = url
        self._headers = dict(request_headers or {})
        self._append_message_type = append_message_type_to_url
        self._connection_types = list(connection_types)

    def add_listener(self, channel: str, callback: MessageCallback) -> ListenerHandle:
        """Register a callback for every message on a channel."""
        self._listeners.setdefault(channel, []).append(callback)
        return ListenerHandle(channel=channel, callback=callback)

    def remove_listener(self, handle: ListenerHandle) -> None:
        """Remove a callback registered with add_listener."""
        callbacks = self._listeners.get(handle.channel, [])
        if handle.callback in callbacks:
            callbacks.remove(handle.callback)

    # --- Handshake ---

    async def handshake(self) -> Message:
        """
        Send /meta/handshake and start the connect loop on success.

        Transport errors are reported as an unsuccessful reply rather
        than raised.
        """
        if self._url is None:
            raise RuntimeError("configure() must be called before handshake()")

        self._stopping = False
        reply = await self._handshake()

        if reply.get("successful") and (self._connect_task is None or self._connect_task.done()):
            self._connect_task = asyncio.create_task(self._connect_loop())

        return reply

    async def _handshake(self) -> Message:
        self._status = ClientStatus.HANDSHAKING
        self._client_id = None

        reply = await self._send_meta(
            "/meta/handshake",
            {
                "version": self.BAYEUX_VERSION,
                "minimumVersion": self.BAYEUX_VERSION,
                "supportedConnectionTypes": list(self._connection_types),
                "advice": {"timeout": self._advice.get("timeout", 60000), "interval": 0},
            },
        )

        if reply.get("successful"):
            self._client_id = reply.get("clientId")
            self._status = ClientStatus.CONNECTED
            self._backoff = 0.0
            self._advice["reconnect"] = "retry"
            logger.info(f"Bayeux handshake successful, clientId: {self._client_id}")
        else:
            self._status = ClientStatus.DISCONNECTED
            logger.warning(f"Bayeux handshake failed: {reply.get('error')}")

        self._update_advice(reply)
        await self._dispatch(reply)
        return reply

    # --- Subscribe / disconnect ---

    async def subscribe(self, channel: str, callback: MessageCallback) -> Message:
        """
        Subscribe to a channel.

        The callback is kept only when the server accepts the
        subscription.
        """
        self._subscriptions.setdefault(channel, []).append(callback)

        reply = await self._send_meta("/meta/subscribe", {"subscription": channel})

        if reply.get("successful"):
            logger.info(f"Subscribed to channel: {channel}")
        else:
            self._subscriptions[channel].remove(callback)
            if not self._subscriptions[channel]:
                del self._subscriptions[channel]
            logger.warning(f"Subscribe to {channel} failed: {reply.get('error')}")

        await self._dispatch(reply)
        return reply

    async def disconnect(self) -> Message | None:
        """Send /meta/disconnect, stop the connect loop and close HTTP."""
        reply = None
        had_session = self._client_id is not None
        self._status = ClientStatus.DISCONNECTING
        self._stopping = True

        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
        self._connect_task = None

        if had_session:
            reply = await self._send_meta("/meta/disconnect", {})

        self._client_id = None
        self._status = ClientStatus.DISCONNECTED

        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

        if reply is not None:
            await self._dispatch(reply)
        logger.info("Bayeux client disconnected")
        return reply

    # --- Connect loop ---

    async def _connect_loop(self) -> None:
        """Hold /meta/connect requests open until told to stop."""
        while not self._stopping:
            try:
                if not await self._connect_once():
                    return
            except Exception as e:
                logger.exception("Bayeux connect loop iteration failed")
                self._report_loop_error(e)
                await self._sleep_backoff()

    async def _connect_once(self) -> bool:
        """Run one reconnect/connect round; False once the server says stop."""
        reconnect = self._advice.get("reconnect", "retry")

        if reconnect == "none":
            logger.warning("Server advised not to reconnect; stopping connect loop")
            self._status = ClientStatus.DISCONNECTED
            return False

        if reconnect == "handshake":
            reply = await self._handshake()
            if not reply.get("successful"):
                await self._sleep_backoff()
                return True
            await self._resubscribe()

        interval = self._advice.get("interval", 0) or 0
        if interval > 0:
            await asyncio.sleep(interval / 1000)

        reply = await self._send_meta(
            "/meta/connect",
            {"connectionType": LONG_POLLING},
            timeout=self._long_poll_timeout(),
        )
        self._update_advice(reply)
        await self._dispatch(reply)

        if reply.get("successful"):
            self._backoff = 0.0
        else:
            await self._sleep_backoff()
        return True

    def _report_loop_error(self, error: Exception) -> None:
        if self.on_listener_exception is None:
            return
        try:
            self.on_listener_exception(error, "/meta/connect", {"channel": "/meta/connect"})
        except Exception:
            logger.exception("on_listener_exception handler raised")

    async def _resubscribe(self) -> None:
        """Restore subscriptions after a re-handshake."""
        for channel in list(self._subscriptions):
            reply = await self._send_meta("/meta/subscribe", {"subscription": channel})
            if not reply.get("successful"):
                logger.warning(f"Resubscribe to {channel} failed: {reply.get('error')}")
            await self._dispatch(reply)

    async def _sleep_backoff(self) -> None:
        self._backoff = min(self._backoff + self._backoff_increment, self._max_backoff)
        logger.debug(f"Backing off for {self._backoff}s")
        await asyncio.sleep(self._backoff)

    def _update_advice(self, reply: Message) -> None:
        advice = reply.get("advice")
        if isinstance(advice, dict):
            self._advice.update(advice)
        elif not reply.get("successful") and reply.get("channel") == "/meta/handshake":
            self._advice["reconnect"] = "handshake"

    def _long_poll_timeout(self) -> httpx.Timeout:
        server_timeout = (self._advice.get("timeout", 60000) or 0) / 1000
        return httpx.Timeout(10.0, read=server_timeout + self._max_network_delay)

    # --- Wire ---

    def _next_id(self) -> str:
        self._message_id += 1
        return str(self._message_id)

    def _url_for(self, channel: str) -> str:
        if self._url is None:
            raise RuntimeError("configure() must be called before sending messages")
        if self._append_message_type and channel.startswith("/meta/") and "?" not in self._url:
            return self._url.rstrip("/") + "/" + channel[len("/meta/"):]
        return self._url

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                headers=self._headers,
                timeout=httpx.Timeout(10.0, read=30.0),
                transport=self._transport,
            )
        return self._http

    async def _send_meta(
        self,
        channel: str,
        fields: dict[str, Any],
        timeout: httpx.Timeout | None = None,
    ) -> Message:
        """
        Send one meta message and return the reply for that channel.

        Other messages in the response batch are dispatched. Transport
        failures produce an unsuccessful synthetic reply.
        """
        message: Message = {"channel": channel, "id": self._next_id(), **fields}
        if self._client_id is not None:
            message["clientId"] = self._client_id

        url = self._url_for(channel)
        http = await self._get_http()
        kwargs: dict[str, Any] = {"json": [message]}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await http.post(url, **kwargs)
            response.raise_for_status()
            batch = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"{channel} request failed: {e}")
            return self._failure_reply(message, e)

        if isinstance(batch, dict):
            batch = [batch]
        if not isinstance(batch, list):
            return self._failure_reply(message, ValueError(f"Unexpected {channel} response: {batch!r}"))

        reply: Message | None = None
        for item in batch:
            if not isinstance(item, dict):
                continue
            if reply is None and item.get("channel") == channel:
                reply = item
            else:
                await self._dispatch(item)

        if reply is None:
            return self._failure_reply(message, ValueError(f"No reply for {channel}"))
        return reply

    @staticmethod
    def _failure_reply(message: Message, error: BaseException) -> Message:
        return {
            "channel": message["channel"],
            "id": message.get("id"),
            "successful": False,
            "error": str(error),
            "failure": {"exception": repr(error), "message": message},
        }

    # --- Dispatch ---

    async def _dispatch(self, message: Message) -> None:
        channel = message.get("channel")
        if not isinstance(channel, str):
            return

        for callback in list(self._listeners.get(channel, [])):
            await self._invoke(callback, channel, message)

        if not channel.startswith("/meta/"):
            for callback in list(self._subscriptions.get(channel, [])):
                await self._invoke(callback, channel, message)

    async def _invoke(self, callback: MessageCallback, channel: str, message: Message) -> None:
        try:
            result = callback(message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            if self.on_listener_exception is None:
                logger.exception(f"Listener for {channel} raised")
                return
            try:
                self.on_listener_exception(e, channel, message)
            except Exception:
                logger.exception("on_listener_exception handler raised")
