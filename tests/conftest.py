"""Shared fixtures: in-memory transport and timers for state-machine tests."""

from __future__ import annotations

import asyncio
import socket
from typing import Callable

import pytest

from wschat.connection import ConnectionManager
from wschat.errors import ChatConnectionError
from wschat.types import ConnectionState, RetryPolicy

URL = "ws://chat.test/ws"


class FakeHandle:
    """Transport handle whose events are driven by the test."""

    def __init__(self, url, listener):
        self.url = url
        self.listener = listener
        self.sent: list[str] = []
        self.closed = False

    def send(self, data):
        self.sent.append(data)

    def close(self):
        self.closed = True

    # -- Drivers (simulate the network) --

    def open(self):
        self.listener.opened()

    def receive(self, data):
        self.listener.received(data)

    def drop(self, code=1006, reason=""):
        self.listener.closed(code, reason)

    def fail(self, exc=None):
        self.listener.failed(exc or ChatConnectionError("connection refused"))


class FakeTransport:
    def __init__(self):
        self.handles: list[FakeHandle] = []

    def open(self, url, listener):
        handle = FakeHandle(url, listener)
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeHandle:
        return self.handles[-1]

    @property
    def live(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.closed]


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    """Records scheduled retries instead of waiting for them."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    @property
    def delays(self) -> list[float]:
        return [t.delay for t in self.timers]

    def fire(self):
        pending = self.pending
        assert len(pending) == 1, f"expected one pending timer, got {len(pending)}"
        timer = pending[0]
        timer.fired = True
        timer.callback()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def states():
    return []


@pytest.fixture
def frames():
    return []


@pytest.fixture
def manager(transport, timers, states, frames):
    return ConnectionManager(
        URL,
        policy=RetryPolicy(),
        transport=transport,
        timer=timers,
        on_frame=frames.append,
        on_state_change=states.append,
    )


def free_port() -> int:
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


def connect_and_open(manager: ConnectionManager, transport: FakeTransport) -> FakeHandle:
    manager.connect()
    transport.last.open()
    assert manager.state == ConnectionState.CONNECTED
    return transport.last


@pytest.fixture
def open_connection(manager, transport):
    """Connect the manager and complete the handshake; returns the handle."""
    return lambda: connect_and_open(manager, transport)


@pytest.fixture
def until():
    return wait_until


@pytest.fixture
def unused_port():
    return free_port()
