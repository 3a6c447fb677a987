"""Live stream transport — a callback-style WebSocket.

Learn: The multiplexer is written against the same contract a browser
WebSocket offers: construct it and it starts connecting; it reports back
through on_open / on_message / on_error / on_close; send() queues a text
frame; close() tears it down. Keeping that contract (instead of an
`async with` block) lets the multiplexer detach handlers *before* a
deliberate close, so a teardown can never trigger a reconnect.

WebSocketTransport implements the contract on top of `websockets`:
one background task owns the connection, and a sender task drains an
outbox so send() stays synchronous.

Error semantics match the browser: a failed connect or an abnormal
drop fires on_error first, then on_close. A clean server close fires
on_close only. close() fires nothing; the caller already knows.
"""

import asyncio
from contextlib import suppress
from typing import Callable, Optional, Protocol

import structlog
import websockets
from websockets.exceptions import WebSocketException

logger = structlog.get_logger()


class Transport(Protocol):
    """What the multiplexer needs from a live connection."""

    on_open: Optional[Callable[[], None]]
    on_message: Optional[Callable[[str], None]]
    on_close: Optional[Callable[[], None]]
    on_error: Optional[Callable[[str], None]]

    @property
    def is_open(self) -> bool: ...

    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


TransportFactory = Callable[[str], Transport]


class WebSocketTransport:
    """`websockets`-backed Transport. Must be created inside a running loop."""

    def __init__(self, url: str, *, open_timeout: float = 10.0):
        self.url = url
        self.open_timeout = open_timeout
        self.on_open: Optional[Callable[[], None]] = None
        self.on_message: Optional[Callable[[str], None]] = None
        self.on_close: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

        self._ws = None
        self._closing = False
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="truthsync-ws"
        )

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    def send(self, text: str) -> None:
        """Queue a text frame. Dropped silently if the socket isn't open."""
        if not self.is_open:
            return
        self._outbox.put_nowait(text)

    def close(self) -> None:
        self._closing = True
        if not self._task.done():
            self._task.cancel()

    # ─── Connection task ─────────────────────────────────────

    async def _run(self) -> None:
        try:
            # Library-level pings disabled: liveness is the app-level
            # "ping" text frame, and probe silence must not drop the socket.
            async with websockets.connect(
                self.url,
                open_timeout=self.open_timeout,
                ping_interval=None,
            ) as ws:
                self._ws = ws
                self._fire(self.on_open)
                sender = asyncio.create_task(self._sender(ws))
                try:
                    async for frame in ws:
                        if isinstance(frame, bytes):
                            frame = frame.decode("utf-8", errors="replace")
                        self._fire(self.on_message, frame)
                finally:
                    sender.cancel()
                    with suppress(asyncio.CancelledError):
                        await sender
        except asyncio.CancelledError:
            self._ws = None
            raise
        except (OSError, TimeoutError, asyncio.TimeoutError, WebSocketException) as e:
            self._ws = None
            detail = str(e) or e.__class__.__name__
            logger.debug("transport.error", url=redact_url(self.url), error=detail)
            self._fire(self.on_error, detail)

        self._ws = None
        self._fire(self.on_close)

    async def _sender(self, ws) -> None:
        while True:
            text = await self._outbox.get()
            try:
                await ws.send(text)
            except WebSocketException:
                logger.debug("transport.send_failed", exc_info=True)
                return

    def _fire(self, handler, *args) -> None:
        if self._closing or handler is None:
            return
        handler(*args)


def redact_url(url: str) -> str:
    """Strip the query string (it carries the admin token) for logging."""
    return url.split("?", 1)[0]
