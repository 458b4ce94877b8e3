# =============================================================================
# wschat -- Transport
# =============================================================================
#
# A transport opens handles; a handle reports its lifecycle to a listener.
# Handles must never call the listener from inside open() and never after
# close() -- the connection manager relies on both.
# =============================================================================

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed

from ._logging import logger
from .constants import CONNECTION_TIMEOUT, MAX_FRAME_SIZE, WS_CLOSE_ABNORMAL
from .errors import ChatConnectionError


class TransportListener(Protocol):
    """Receives events for exactly one transport handle."""

    def opened(self) -> None: ...

    def received(self, data: str | bytes) -> None: ...

    def closed(self, code: int, reason: str) -> None: ...

    def failed(self, exc: BaseException) -> None: ...


@runtime_checkable
class TransportHandle(Protocol):
    """One live (or opening) duplex channel."""

    def send(self, data: str) -> None: ...

    def close(self) -> None: ...


class Transport(Protocol):
    """Factory for transport handles."""

    def open(self, url: str, listener: TransportListener) -> TransportHandle: ...


class WebSocketHandle:
    """A single WebSocket connection driven by one background task.

    Outbound frames go through a FIFO queue drained by a writer task so
    that ``send()`` never blocks and frames leave in call order.
    """

    def __init__(
        self,
        url: str,
        listener: TransportListener,
        *,
        connect_timeout: float = CONNECTION_TIMEOUT,
        max_size: int = MAX_FRAME_SIZE,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self._url = url
        self._listener = listener
        self._connect_timeout = connect_timeout
        self._max_size = max_size
        self._extra_headers = extra_headers or {}

        self._ws: websockets.asyncio.client.ClientConnection | None = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def send(self, data: str) -> None:
        if self._closed or self._ws is None:
            return
        self._outbox.put_nowait(data)

    def close(self) -> None:
        """Stop reporting events and tear the socket down in the background."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()

    # -- Internal -------------------------------------------------------------

    async def _run(self) -> None:
        try:
            self._ws = await asyncio.wait_for(
                websockets.asyncio.client.connect(
                    self._url,
                    additional_headers=self._extra_headers,
                    max_size=self._max_size,
                    open_timeout=None,  # asyncio.wait_for handles timeout
                ),
                timeout=self._connect_timeout,
            )
        except asyncio.CancelledError:
            return
        except asyncio.TimeoutError:
            self._report_failure(
                ChatConnectionError(
                    f"Connection timed out after {self._connect_timeout}s"
                )
            )
            return
        except Exception as exc:
            self._report_failure(ChatConnectionError(f"Failed to connect: {exc}"))
            return

        ws = self._ws
        writer = asyncio.create_task(self._send_loop(ws))
        try:
            if self._closed:
                return
            self._listener.opened()
            async for message in ws:
                if self._closed:
                    return
                self._listener.received(message)
            self._report_close(ws)
        except ConnectionClosed:
            self._report_close(ws)
        except asyncio.CancelledError:
            return
        except Exception as exc:
            logger.warning("Receive loop error: %s", exc)
            self._report_failure(ChatConnectionError(f"Receive failed: {exc}"))
        finally:
            writer.cancel()
            self._ws = None
            await ws.close()

    async def _send_loop(self, ws: Any) -> None:
        while True:
            data = await self._outbox.get()
            try:
                await ws.send(data)
            except ConnectionClosed:
                logger.debug("Send failed: connection closed")
                return

    def _report_close(self, ws: Any) -> None:
        if self._closed:
            return
        code = ws.close_code if ws.close_code is not None else WS_CLOSE_ABNORMAL
        self._listener.closed(code, ws.close_reason or "")

    def _report_failure(self, exc: BaseException) -> None:
        if self._closed:
            return
        self._listener.failed(exc)


class WebSocketTransport:
    """``Transport`` backed by the ``websockets`` asyncio client.

    Must be used from a running event loop.

    Args:
        connect_timeout: Seconds allowed for the opening handshake.
        max_size: Largest inbound frame accepted, in bytes.
        extra_headers: Additional HTTP headers for the handshake.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = CONNECTION_TIMEOUT,
        max_size: int = MAX_FRAME_SIZE,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._max_size = max_size
        self._extra_headers = extra_headers

    def open(self, url: str, listener: TransportListener) -> WebSocketHandle:
        handle = WebSocketHandle(
            url,
            listener,
            connect_timeout=self._connect_timeout,
            max_size=self._max_size,
            extra_headers=self._extra_headers,
        )
        handle.start()
        return handle
