"""
Streaming module for the Salesforce event listener.

Provides:
- A long-polling Bayeux (CometD) client
- The session manager that starts the listener once per process
"""

from salesforce_bridge.streaming.bayeux import BayeuxClient, ClientStatus, ListenerHandle
from salesforce_bridge.streaming.session import (
    ListenerConfig,
    SessionRegistry,
    SessionState,
    StreamingSession,
    StreamingSessionManager,
    Subscription,
)
from salesforce_bridge.streaming.transport import ListenerLogger, StreamingTransport

__all__ = [
    "BayeuxClient",
    "ClientStatus",
    "ListenerConfig",
    "ListenerHandle",
    "ListenerLogger",
    "SessionRegistry",
    "SessionState",
    "StreamingSession",
    "StreamingSessionManager",
    "StreamingTransport",
    "Subscription",
]
