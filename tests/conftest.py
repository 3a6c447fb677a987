"""Test fixtures — in-memory transports and mocked HTTP.

Learn: Nothing here touches the network.

1. FakeTransport stands in for the WebSocket. Tests drive its lifecycle
   by hand (open / receive / drop), exactly like the engine would.
2. httpx.MockTransport answers REST calls from a handler function, so
   TruthClient runs its real request/error-mapping code.

Timings are shrunk to tens of milliseconds so backoff, polling and
keepalive can be observed with short asyncio.sleep() calls.
"""

import asyncio
import json
from typing import Callable, Optional

import httpx
import pytest

from truthsync.api.client import TruthClient
from truthsync.realtime.multiplexer import ConnectionMultiplexer

STREAM_URL = "ws://engine.test/api/v1/ws"

FLOOR = 0.01
CEILING = 0.04
PING_INTERVAL = 0.02


class FakeTransport:
    """Transport driven by the test instead of a socket."""

    def __init__(self, url: str):
        self.url = url
        self.on_open = None
        self.on_message = None
        self.on_close = None
        self.on_error = None
        self.sent: list[str] = []
        self.closed = False
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open and not self.closed

    def send(self, text: str) -> None:
        self.sent.append(text)

    def close(self) -> None:
        self.closed = True
        self._open = False

    # ─── Test drivers (what the engine/network would do) ─────

    def open(self) -> None:
        self._open = True
        if self.on_open:
            self.on_open()

    def receive(self, text: str) -> None:
        if self.on_message:
            self.on_message(text)

    def error(self, detail: str = "boom") -> None:
        if self.on_error:
            self.on_error(detail)

    def drop(self, error: Optional[str] = None) -> None:
        """Unplanned close, optionally preceded by an error (browser order)."""
        if error is not None:
            self.error(error)
        self._open = False
        if self.on_close:
            self.on_close()


class FakeTransportFactory:
    def __init__(self):
        self.created: list[FakeTransport] = []

    def __call__(self, url: str) -> FakeTransport:
        transport = FakeTransport(url)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


def frame(kind: str, version: int, **extra) -> str:
    """Build a JSON stream frame. Snapshot/tick payload carries the version."""
    body = {"type": kind, "state_version": version, "timestamp": 1700000000.0 + version}
    if kind in ("snapshot", "tick") and "payload" not in extra:
        body["payload"] = {"state_version": version}
    body.update(extra)
    return json.dumps(body)


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll `predicate` until true or fail after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.002)


@pytest.fixture()
def transports():
    return FakeTransportFactory()


@pytest.fixture()
def mux(transports):
    return ConnectionMultiplexer(
        STREAM_URL,
        transports,
        ping_interval=PING_INTERVAL,
        reconnect_initial_delay=FLOOR,
        reconnect_max_delay=CEILING,
    )


@pytest.fixture()
def make_client():
    """Factory: TruthClient whose HTTP is answered by `handler`."""

    def _make(handler, token: Optional[str] = None, api_url: str = "http://engine.test"):
        return TruthClient(api_url, token, transport=httpx.MockTransport(handler))

    return _make
