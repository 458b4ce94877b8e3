# =============================================================================
# wschat -- Type Definitions
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .constants import RETRY_BASE_DELAY, RETRY_MAX_ATTEMPTS, RETRY_MAX_DELAY
from .errors import ChatConfigError


class ConnectionState(str, Enum):
    """Connection lifecycle state.

    Typical flow: IDLE -> CONNECTING -> CONNECTED -> DISCONNECTED.
    DISCONNECTED and FAILED are followed by a scheduled reconnect until
    the retry budget runs out. Only ``disconnect()`` returns to IDLE.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A chat message as exchanged with the server.

    Attributes:
        id: Per-process unique token, e.g. ``"1704067200000"``.
        author: Identity of the sender (``username`` on the wire).
        body: Trimmed message text (``content`` on the wire).
        sent_at: Timezone-aware send time (``timestamp`` on the wire).
    """

    id: str
    author: str
    body: str
    sent_at: datetime

    def time_label(self) -> str:
        """Local ``HH:MM`` label of the send time."""
        return self.sent_at.astimezone().strftime("%H:%M")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff for automatic reconnection.

    Attributes:
        base_delay: Delay in seconds before the first retry.
        max_delay: Upper bound for any single delay, in seconds.
        max_attempts: Automatic retries allowed before giving up.
    """

    base_delay: float = RETRY_BASE_DELAY
    max_delay: float = RETRY_MAX_DELAY
    max_attempts: int = RETRY_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ChatConfigError(f"base_delay must be positive, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ChatConfigError(
                f"max_delay ({self.max_delay}) is below base_delay ({self.base_delay})"
            )
        if self.max_attempts < 0:
            raise ChatConfigError(
                f"max_attempts must be >= 0, got {self.max_attempts}"
            )

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number *attempt* (0-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)


@dataclass
class ConnectionStats:
    """Counters for one connection manager."""

    frames_sent: int = 0
    frames_received: int = 0
    reconnect_attempts: int = 0
    connected_since: float | None = None
