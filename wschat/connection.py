# =============================================================================
# wschat -- Connection Manager
# =============================================================================
#
# Owns one logical connection: the transport handle, the state machine and
# the reconnect timer. Every transport handle is tagged with a generation;
# events from any other generation are stale and ignored.
# =============================================================================

from __future__ import annotations

import asyncio
import time
from functools import partial
from typing import Any, Callable, Protocol

from ._logging import logger
from .config import ClientConfig
from .transport import Transport, TransportHandle, WebSocketTransport
from .types import ConnectionState, ConnectionStats, RetryPolicy


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


# (delay_seconds, callback) -> cancellable handle
TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def _loop_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class _GenerationListener:
    """Forwards one handle's events to the manager, tagged with its generation."""

    __slots__ = ("_manager", "_generation")

    def __init__(self, manager: ConnectionManager, generation: int) -> None:
        self._manager = manager
        self._generation = generation

    def opened(self) -> None:
        self._manager._handle_opened(self._generation)

    def received(self, data: str | bytes) -> None:
        self._manager._handle_received(self._generation, data)

    def closed(self, code: int, reason: str) -> None:
        self._manager._handle_closed(self._generation, code, reason)

    def failed(self, exc: BaseException) -> None:
        self._manager._handle_failed(self._generation, exc)


class ConnectionManager:
    """Single-connection lifecycle with bounded exponential reconnect.

    All methods must be called from one event loop. ``connect()`` returns
    immediately; the outcome arrives through ``on_state_change``.

    Args:
        url: WebSocket endpoint.
        policy: Reconnect backoff policy.
        transport: Opens transport handles. Defaults to
            :class:`~wschat.transport.WebSocketTransport`.
        timer: Schedules retry callbacks. Defaults to ``loop.call_later``.
        on_frame: Called with every raw inbound frame while connected.
        on_state_change: Called with the new state on every transition.
        on_retries_exhausted: Called once when the retry budget runs out.
    """

    def __init__(
        self,
        url: str,
        *,
        policy: RetryPolicy | None = None,
        transport: Transport | None = None,
        timer: TimerFactory | None = None,
        on_frame: Callable[[str | bytes], Any] | None = None,
        on_state_change: Callable[[ConnectionState], Any] | None = None,
        on_retries_exhausted: Callable[[], Any] | None = None,
    ) -> None:
        self._url = url
        self._policy = policy or RetryPolicy()
        self._transport = transport or WebSocketTransport()
        self._timer = timer or _loop_call_later

        # Callbacks
        self._on_frame = on_frame
        self._on_state_change = on_state_change
        self._on_retries_exhausted = on_retries_exhausted

        # State
        self._state = ConnectionState.IDLE
        self._handle: TransportHandle | None = None
        self._generation = 0
        self._attempts = 0
        self._retries_exhausted = False
        self._disposed = False
        self._stats = ConnectionStats()

        # Retry timer
        self._retry_timer: TimerHandle | None = None
        self._retry_token = 0
        self._retry_delay: float | None = None

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> ConnectionManager:
        """Build a manager with a WebSocket transport configured from *config*."""
        kwargs.setdefault(
            "transport",
            WebSocketTransport(
                connect_timeout=config.connect_timeout,
                max_size=config.max_frame_size,
                extra_headers=config.extra_headers,
            ),
        )
        return cls(config.url, policy=config.retry, **kwargs)

    # -- Properties -----------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._handle is not None

    @property
    def attempts(self) -> int:
        """Automatic retries scheduled since the last successful connect."""
        return self._attempts

    @property
    def retry_pending(self) -> bool:
        return self._retry_timer is not None

    @property
    def retry_delay(self) -> float | None:
        """Delay of the pending retry timer, or None when none is armed."""
        return self._retry_delay

    @property
    def retries_exhausted(self) -> bool:
        return self._retries_exhausted

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def stats(self) -> ConnectionStats:
        return self._stats

    # -- Connect / Disconnect -------------------------------------------------

    def connect(self) -> None:
        """Open the connection unless one is already opening or open.

        An explicit call cancels any pending retry and restarts the retry
        budget from zero.
        """
        if self._disposed:
            logger.warning("connect() ignored: manager has been disposed")
            return
        if self._handle is not None:
            return

        self._cancel_retry()
        self._attempts = 0
        self._retries_exhausted = False
        self._open()

    def disconnect(self) -> None:
        """Close the connection and stop reconnecting.  Safe from any state."""
        self._cancel_retry()
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
        self._retries_exhausted = False
        self._stats.connected_since = None
        self._set_state(ConnectionState.IDLE)

    def dispose(self) -> None:
        """Disconnect and refuse further ``connect()`` calls.  Idempotent."""
        self._disposed = True
        self.disconnect()

    # -- Send -----------------------------------------------------------------

    def send(self, data: str) -> bool:
        """Hand a text frame to the transport.  Returns False when not connected."""
        if not self.is_connected:
            logger.debug("send() dropped: state is %s", self._state.value)
            return False
        assert self._handle is not None
        self._handle.send(data)
        self._stats.frames_sent += 1
        return True

    # -- Internal: transport events -------------------------------------------

    def _open(self) -> None:
        self._generation += 1
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)
        if generation != self._generation:
            # a state handler already connected or disconnected
            return
        try:
            self._handle = self._transport.open(
                self._url, _GenerationListener(self, generation)
            )
        except Exception as exc:
            logger.warning("Failed to open transport: %s", exc)
            self._handle = None
            self._retire(ConnectionState.FAILED)

    def _handle_opened(self, generation: int) -> None:
        if generation != self._generation or self._state != ConnectionState.CONNECTING:
            return
        self._attempts = 0
        self._retries_exhausted = False
        self._stats.connected_since = time.monotonic()
        self._set_state(ConnectionState.CONNECTED)

    def _handle_received(self, generation: int, data: str | bytes) -> None:
        if generation != self._generation or self._state != ConnectionState.CONNECTED:
            return
        self._stats.frames_received += 1
        if self._on_frame:
            self._invoke(self._on_frame, data)

    def _handle_closed(self, generation: int, code: int, reason: str) -> None:
        if generation != self._generation:
            return
        logger.debug("Transport closed: code=%d reason=%s", code, reason)
        if self._state == ConnectionState.CONNECTING:
            self._retire(ConnectionState.FAILED)
        else:
            self._retire(ConnectionState.DISCONNECTED)

    def _handle_failed(self, generation: int, exc: BaseException) -> None:
        if generation != self._generation:
            return
        logger.debug("Transport error: %s", exc)
        self._retire(ConnectionState.FAILED)

    def _retire(self, new_state: ConnectionState) -> None:
        """Drop the current handle after its first terminal event and back off."""
        self._generation += 1
        generation = self._generation
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
        self._stats.connected_since = None
        self._set_state(new_state)
        if generation != self._generation or self._disposed:
            return
        self._schedule_retry()

    # -- Internal: reconnection -----------------------------------------------

    def _schedule_retry(self) -> None:
        self._cancel_retry()
        policy = self._policy
        if self._attempts >= policy.max_attempts:
            logger.error(
                "Max reconnect attempts (%d) reached, giving up", policy.max_attempts
            )
            self._retries_exhausted = True
            if self._on_retries_exhausted:
                self._invoke(self._on_retries_exhausted)
            return

        delay = policy.delay_for(self._attempts)
        self._attempts += 1
        logger.info(
            "Reconnecting in %.1fs (attempt %d/%d)",
            delay,
            self._attempts,
            policy.max_attempts,
        )
        self._retry_token += 1
        self._retry_delay = delay
        self._retry_timer = self._timer(
            delay, partial(self._on_retry_timer, self._retry_token)
        )

    def _on_retry_timer(self, token: int) -> None:
        if token != self._retry_token or self._retry_timer is None:
            return
        self._retry_timer = None
        self._retry_delay = None
        if self._disposed or self._handle is not None:
            return
        self._stats.reconnect_attempts += 1
        self._open()

    def _cancel_retry(self) -> None:
        self._retry_token += 1
        self._retry_delay = None
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    # -- State management -----------------------------------------------------

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        logger.debug("State: %s -> %s", old.value, new_state.value)
        if self._on_state_change:
            self._invoke(self._on_state_change, new_state)

    def _invoke(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as exc:
            logger.error("Callback %r failed: %s", callback, exc)

    def get_stats(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "attempts": self._attempts,
            "retry_pending": self.retry_pending,
            "retry_delay": self._retry_delay,
            "retries_exhausted": self._retries_exhausted,
            "frames_sent": self._stats.frames_sent,
            "frames_received": self._stats.frames_received,
            "reconnect_attempts": self._stats.reconnect_attempts,
            "connected_since": self._stats.connected_since,
        }
