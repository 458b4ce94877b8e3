# =============================================================================
# wschat -- Client Configuration
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field

from .constants import CONNECTION_TIMEOUT, DEFAULT_URL, MAX_FRAME_SIZE
from .errors import ChatConfigError
from .types import RetryPolicy


@dataclass
class ClientConfig:
    """Static configuration for a chat session.

    Attributes:
        url: WebSocket endpoint, e.g. ``"ws://localhost:3001/ws"``.
        retry: Reconnect backoff policy.
        connect_timeout: Seconds allowed for the opening handshake.
        max_frame_size: Largest inbound frame accepted, in bytes.
        extra_headers: Additional HTTP headers for the handshake.
    """

    url: str = DEFAULT_URL
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    connect_timeout: float = CONNECTION_TIMEOUT
    max_frame_size: int = MAX_FRAME_SIZE
    extra_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.url.startswith(("ws://", "wss://")):
            raise ChatConfigError(f"Expected a ws:// or wss:// URL, got {self.url!r}")
        if self.connect_timeout <= 0:
            raise ChatConfigError(
                f"connect_timeout must be positive, got {self.connect_timeout}"
            )
        if self.max_frame_size <= 0:
            raise ChatConfigError(
                f"max_frame_size must be positive, got {self.max_frame_size}"
            )
