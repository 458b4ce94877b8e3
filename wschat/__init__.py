"""wschat -- resilient real-time chat client.

Async usage (inside a running event loop)::

    from wschat import ChatSession, ClientConfig

    session = ChatSession(ClientConfig(url="ws://localhost:3001/ws"))

    @session.on_message
    def show(message):
        print(f"[{message.time_label()}] {message.author}: {message.body}")

    session.start("alice")
    session.send_message("hi")   # dropped silently until connected
    session.end()

Sync usage::

    from wschat import ConnectionState, SyncChatSession

    client = SyncChatSession()
    client.start("alice")
    client.wait_for_state(ConnectionState.CONNECTED, timeout=5.0)
    client.send_message("hi")
    client.end()
"""

from ._version import __version__
from .config import ClientConfig
from .connection import ConnectionManager
from .errors import (
    ChatConfigError,
    ChatConnectionError,
    ChatError,
    ChatProtocolError,
    ChatTimeoutError,
)
from .protocol import MessageCodec
from .session import ChatSession
from .status import StatusInfo, describe
from .sync_session import SyncChatSession
from .transport import WebSocketTransport
from .types import ChatMessage, ConnectionState, ConnectionStats, RetryPolicy

__all__ = [
    "__version__",
    "ChatSession",
    "SyncChatSession",
    "ConnectionManager",
    "ClientConfig",
    "RetryPolicy",
    "ChatMessage",
    "ConnectionState",
    "ConnectionStats",
    "MessageCodec",
    "StatusInfo",
    "describe",
    "WebSocketTransport",
    "ChatError",
    "ChatConnectionError",
    "ChatProtocolError",
    "ChatConfigError",
    "ChatTimeoutError",
]
