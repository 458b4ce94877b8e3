# =============================================================================
# wschat -- Synchronous Wrapper
# =============================================================================
#
# Thread-based wrapper around ChatSession for blocking usage. Every call is
# marshalled onto one private event loop thread, so the connection manager
# is never touched by two threads at once.
# =============================================================================

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from typing import Any, Callable

from ._logging import logger
from .config import ClientConfig
from .errors import ChatTimeoutError
from .session import ChatSession
from .status import StatusInfo
from .types import ChatMessage, ConnectionState


async def _invoke(fn: Callable[..., Any], *args: Any) -> Any:
    return fn(*args)


class SyncChatSession:
    """Blocking / thread-based chat session.

    Runs a :class:`ChatSession` on a background thread. Public methods are
    thread-safe; registered handlers are called on the background thread
    and must not call back into this object (that would block the loop).

    Args:
        config: Endpoint and retry configuration.
        call_timeout: Seconds to wait for each marshalled call.

    Example::

        client = SyncChatSession(ClientConfig(url="ws://localhost:3001/ws"))
        client.on_message(lambda m: print(m.author, m.body))
        client.start("alice")
        client.wait_for_state(ConnectionState.CONNECTED, timeout=5.0)
        client.send_message("hello")
        client.end()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        call_timeout: float = 5.0,
        **session_kwargs: Any,
    ) -> None:
        self._session = ChatSession(config, **session_kwargs)
        self._call_timeout = call_timeout

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._loop_ready = threading.Event()

        self._state = ConnectionState.IDLE
        self._state_changed = threading.Condition()
        self._session.on_state_change(self._track_state)

    # -- Lifecycle ------------------------------------------------------------

    def start(self, identity: str) -> None:
        """Start the loop thread (if needed) and begin the session."""
        if self._thread is None or not self._thread.is_alive():
            self._loop_ready.clear()
            self._thread = threading.Thread(
                target=self._run_loop, daemon=True, name="wschat-session"
            )
            self._thread.start()
            if not self._loop_ready.wait(timeout=self._call_timeout):
                raise ChatTimeoutError("Event loop thread did not start")
        self._call(self._session.start, identity)

    def end(self) -> None:
        """End the session and stop the background thread."""
        loop, thread = self._loop, self._thread
        if loop is None or thread is None or not thread.is_alive():
            return
        try:
            self._call(self._session.end)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=self._call_timeout)
            self._loop = None
            self._thread = None

    def close(self) -> None:
        """Alias for end."""
        self.end()

    # -- Messaging ------------------------------------------------------------

    def send_message(self, body: str) -> ChatMessage | None:
        if self._loop is None:
            return None
        return self._call(self._session.send_message, body)

    def retry(self) -> None:
        if self._loop is None:
            return
        self._call(self._session.retry)

    def wait_for_state(self, state: ConnectionState, timeout: float = 10.0) -> None:
        """Block until the connection reaches *state*.

        Raises:
            ChatTimeoutError: If *state* is not reached within *timeout*.
        """
        with self._state_changed:
            if not self._state_changed.wait_for(
                lambda: self._state == state, timeout=timeout
            ):
                raise ChatTimeoutError(
                    f"State {state.value!r} not reached within {timeout}s"
                    f" (currently {self._state.value!r})"
                )

    # -- Properties -----------------------------------------------------------

    @property
    def identity(self) -> str | None:
        """The trimmed name bound by :meth:`start`, or None."""
        return self._session.identity

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> StatusInfo:
        if self._loop is None:
            return self._session.status
        return self._call(lambda: self._session.status)

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        if self._loop is None:
            return self._session.messages
        return self._call(lambda: self._session.messages)

    def get_stats(self) -> dict[str, Any]:
        if self._loop is None:
            return self._session.get_stats()
        return self._call(self._session.get_stats)

    # -- Handlers (called on the loop thread) ---------------------------------

    def on_state_change(self, handler: Callable[[ConnectionState], Any]) -> Any:
        return self._session.on_state_change(handler)

    def on_message(self, handler: Callable[[ChatMessage], Any]) -> Any:
        return self._session.on_message(handler)

    def on_retries_exhausted(self, handler: Callable[[], Any]) -> Any:
        return self._session.on_retries_exhausted(handler)

    def off(self, handler: Callable[..., Any]) -> None:
        self._session.off(handler)

    # -- Internal -------------------------------------------------------------

    def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        assert self._loop is not None
        future = asyncio.run_coroutine_threadsafe(_invoke(fn, *args), self._loop)
        try:
            return future.result(timeout=self._call_timeout)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise ChatTimeoutError(
                f"Call did not complete within {self._call_timeout}s"
            ) from exc

    def _track_state(self, state: ConnectionState) -> None:
        with self._state_changed:
            self._state = state
            self._state_changed.notify_all()

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._loop_ready.set()
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            loop.close()
            logger.debug("Session loop thread stopped")
