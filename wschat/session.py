# =============================================================================
# wschat -- Chat Session
# =============================================================================
#
# Binds an identity to one ConnectionManager and keeps the ordered log of
# messages echoed back by the server. Sent messages are never appended
# locally; the server echo is the only way into the log.
# =============================================================================

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any, Callable

from ._logging import logger
from .config import ClientConfig
from .connection import ConnectionManager, TimerFactory
from .constants import MAX_IDENTITY_LENGTH, MAX_MESSAGE_LENGTH
from .errors import ChatProtocolError
from .protocol import MessageCodec, MessageIdFactory
from .status import StatusInfo, describe
from .transport import Transport
from .types import ChatMessage, ConnectionState

StateHandler = Callable[[ConnectionState], Any]
MessageHandler = Callable[[ChatMessage], Any]
ExhaustedHandler = Callable[[], Any]


class ChatSession:
    """A user's chat session over one resilient connection.

    Args:
        config: Endpoint and retry configuration.
        transport: Overrides the WebSocket transport (mainly for tests).
        timer: Overrides ``loop.call_later`` for retry scheduling.
        clock: Returns the current aware datetime for ``sent_at``.

    Example::

        session = ChatSession(ClientConfig(url="ws://localhost:3001/ws"))

        @session.on_message
        def show(message):
            print(f"{message.author}: {message.body}")

        session.start("alice")
        session.send_message("hello")
        ...
        session.end()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: Transport | None = None,
        timer: TimerFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._transport = transport
        self._timer = timer
        self._clock = clock or (lambda: datetime.now(UTC))

        self._codec = MessageCodec(max_frame_size=self._config.max_frame_size)
        self._next_id = MessageIdFactory()

        self._identity: str | None = None
        self._connection: ConnectionManager | None = None
        self._log: list[ChatMessage] = []
        self._dropped_frames = 0

        self._state_handlers: list[StateHandler] = []
        self._message_handlers: list[MessageHandler] = []
        self._exhausted_handlers: list[ExhaustedHandler] = []
        self._background_tasks: set[asyncio.Task[Any]] = set()

    # -- Properties -----------------------------------------------------------

    @property
    def identity(self) -> str | None:
        return self._identity

    @property
    def is_active(self) -> bool:
        return self._identity is not None

    @property
    def connection(self) -> ConnectionManager | None:
        return self._connection

    @property
    def state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.IDLE
        return self._connection.state

    @property
    def status(self) -> StatusInfo:
        if self._connection is None:
            return describe(ConnectionState.IDLE)
        return describe(
            self._connection.state,
            retries_exhausted=self._connection.retries_exhausted,
            retry_pending=self._connection.retry_pending,
        )

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        """Snapshot of the log in arrival order."""
        return tuple(self._log)

    # -- Handlers -------------------------------------------------------------

    def on_state_change(self, handler: StateHandler) -> StateHandler:
        """Register *handler* for connection state changes.  Usable as a decorator."""
        self._state_handlers.append(handler)
        return handler

    def on_message(self, handler: MessageHandler) -> MessageHandler:
        """Register *handler* for every message appended to the log."""
        self._message_handlers.append(handler)
        return handler

    def on_retries_exhausted(self, handler: ExhaustedHandler) -> ExhaustedHandler:
        """Register *handler* for the terminal "gave up reconnecting" status."""
        self._exhausted_handlers.append(handler)
        return handler

    def off(self, handler: Callable[..., Any]) -> None:
        """Remove *handler* from every channel it was registered on."""
        for handlers in (
            self._state_handlers,
            self._message_handlers,
            self._exhausted_handlers,
        ):
            if handler in handlers:
                handlers.remove(handler)

    # -- Lifecycle ------------------------------------------------------------

    def start(self, identity: str) -> None:
        """Bind *identity*, clear the log and connect."""
        name = identity.strip()
        if not name or len(name) > MAX_IDENTITY_LENGTH:
            logger.warning(
                "start() ignored: identity must be 1-%d characters", MAX_IDENTITY_LENGTH
            )
            return
        if self._identity is not None:
            logger.warning("start() ignored: session already active as %r", self._identity)
            return

        self._identity = name
        self._log.clear()
        self._dropped_frames = 0

        kwargs: dict[str, Any] = {}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        self._connection = ConnectionManager.from_config(
            self._config,
            timer=self._timer,
            on_frame=self.on_inbound_frame,
            on_state_change=self._handle_state_change,
            on_retries_exhausted=self._handle_retries_exhausted,
            **kwargs,
        )
        self._connection.connect()

    def retry(self) -> None:
        """Reconnect now with a fresh retry budget (manual retry)."""
        if self._connection is None:
            return
        self._connection.connect()

    def end(self) -> None:
        """Forget the identity and log, tear the connection down.  Idempotent."""
        connection, self._connection = self._connection, None
        self._identity = None
        self._log.clear()
        if connection is not None:
            connection.dispose()

    # -- Messaging ------------------------------------------------------------

    def send_message(self, body: str) -> ChatMessage | None:
        """Send *body* as the bound identity.

        Returns:
            The message handed to the transport, or None if nothing was
            sent (empty, oversize or unencodable body, no session, not
            connected).
        """
        text = body.strip()
        if not text or self._identity is None or self._connection is None:
            return None
        if len(text) > MAX_MESSAGE_LENGTH:
            logger.warning(
                "send_message() ignored: %d characters exceeds %d",
                len(text),
                MAX_MESSAGE_LENGTH,
            )
            return None

        message = ChatMessage(
            id=self._next_id(),
            author=self._identity,
            body=text,
            sent_at=self._clock(),
        )
        try:
            frame = self._codec.encode(message)
        except ChatProtocolError as exc:
            logger.warning("send_message() ignored: %s", exc)
            return None
        if not self._connection.send(frame):
            return None
        return message

    def on_inbound_frame(self, data: str | bytes) -> None:
        """Decode one inbound frame and append it to the log."""
        if self._identity is None:
            return
        try:
            message = self._codec.decode(data)
        except ChatProtocolError as exc:
            self._dropped_frames += 1
            logger.debug("Dropping malformed frame: %s", exc)
            return
        self._log.append(message)
        self._invoke_handlers(self._message_handlers, message)

    # -- Stats ----------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "identity": self._identity,
            "state": self.state.value,
            "status": self.status.text,
            "messages": len(self._log),
            "dropped_frames": self._dropped_frames,
        }
        if self._connection is not None:
            stats["connection"] = self._connection.get_stats()
        return stats

    # -- Internal -------------------------------------------------------------

    def _handle_state_change(self, state: ConnectionState) -> None:
        self._invoke_handlers(self._state_handlers, state)

    def _handle_retries_exhausted(self) -> None:
        self._invoke_handlers(self._exhausted_handlers)

    def _invoke_handlers(self, handlers: list[Callable[..., Any]], *args: Any) -> None:
        for handler in list(handlers):
            try:
                result = handler(*args)
                if asyncio.iscoroutine(result):
                    self._fire_task(result)
            except Exception as exc:
                logger.error("Handler %r failed: %s", handler, exc)

    def _fire_task(self, coro: Any) -> None:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
