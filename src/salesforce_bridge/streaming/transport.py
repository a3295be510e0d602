"""Abstract interfaces for the streaming transport and listener logging."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Callable, Protocol

Message = dict[str, Any]

MessageCallback = Callable[[Message], Any]
"""Receives one Bayeux message. May return an awaitable."""

ExceptionHandler = Callable[[BaseException, str, Message], Any]
"""Receives (exception, channel, message) for a failing callback."""


class ListenerLogger(Protocol):
    """Log sink used by the listener. A ``logging.Logger`` satisfies it."""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...


class StreamingTransport(ABC):
    """
    Long-polling messaging transport.

    Implementations own reconnection and backoff once a handshake
    succeeds. Callbacks run on the transport's own delivery task.
    """

    on_listener_exception: ExceptionHandler | None = None

    @abstractmethod
    def configure(
        self,
        url: str,
        request_headers: dict[str, str] | None = None,
        append_message_type_to_url: bool = True,
        connection_types: Sequence[str] = ("long-polling",),
    ) -> None:
        """Set the endpoint, headers and allowed connection types."""
        ...

    @abstractmethod
    async def handshake(self) -> Message:
        """
        Negotiate a session.

        Returns:
            The handshake reply; check its "successful" field
        """
        ...

    @abstractmethod
    def add_listener(self, channel: str, callback: MessageCallback) -> Any:
        """Observe every message on a channel, meta channels included."""
        ...

    @abstractmethod
    async def subscribe(self, channel: str, callback: MessageCallback) -> Message:
        """Subscribe to a data channel and return the subscribe reply."""
        ...

    @abstractmethod
    async def disconnect(self) -> Message | None:
        """Leave the session and release resources."""
        ...
