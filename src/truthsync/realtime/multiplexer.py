"""Connection multiplexer — one live stream, any number of consumers.

Learn: Every panel of the dashboard wants the engine state. If each one
opened its own WebSocket, thirty panels meant thirty connections flooding
the engine. The multiplexer owns the only connection and fans every
inbound frame out to its listeners.

Lifecycle of the shared state (reference counted):

    first subscribe()   → create SharedConnectionState, open transport
    open                → CONNECTED, error cleared, backoff reset, pinger on
    snapshot/tick       → replace snapshot, notify
    event               → replace last_event, notify
    "pong" / garbage    → dropped, nobody notified
    error               → record message, notify (close follows on its own)
    close               → DISCONNECTED, pinger off, notify, maybe reconnect
    last unsubscribe()  → intentional close, everything discarded

Everything runs on one event loop, so there are no locks. What keeps it
race-free is ordering: handlers are detached from a transport *before*
it is closed on purpose, and every callback checks it still belongs to
the current transport of the current shared state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

import structlog

from truthsync.realtime.keepalive import KeepalivePinger
from truthsync.realtime.observable import Listener, Subject, Unsubscribe
from truthsync.realtime.reconnect import ReconnectionController
from truthsync.realtime.transport import (
    Transport,
    TransportFactory,
    WebSocketTransport,
    redact_url,
)
from truthsync.schemas.stream import (
    PONG,
    EventMessage,
    Snapshot,
    SnapshotMessage,
    TickMessage,
    parse_frame,
)

logger = structlog.get_logger()

TRANSPORT_ERROR = "WebSocket connection error"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass
class SharedConnectionState:
    """Everything that lives only while someone is subscribed."""

    reconnect: ReconnectionController
    keepalive: KeepalivePinger
    transport: Optional[Transport] = None
    snapshot: Optional[Snapshot] = None
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    error: Optional[str] = None
    last_event: Optional[EventMessage] = None
    intentional_close: bool = False


class ConnectionMultiplexer:
    """Reference-counted owner of the single live stream.

    `url` may be a string or a zero-argument callable; the callable form
    is re-evaluated on every connect, so a rotated token is picked up.
    """

    def __init__(
        self,
        url: Union[str, Callable[[], str]],
        transport_factory: Optional[TransportFactory] = None,
        *,
        ping_interval: float = 25.0,
        reconnect_initial_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
    ):
        self._url = url
        self._transport_factory = transport_factory or WebSocketTransport
        self.ping_interval = ping_interval
        self.reconnect_initial_delay = reconnect_initial_delay
        self.reconnect_max_delay = reconnect_max_delay

        self._listeners = Subject("multiplexer")
        self._shared: Optional[SharedConnectionState] = None

    # ─── Read side ───────────────────────────────────────────

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._shared.snapshot if self._shared else None

    @property
    def status(self) -> ConnectionStatus:
        return self._shared.status if self._shared else ConnectionStatus.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    @property
    def error(self) -> Optional[str]:
        return self._shared.error if self._shared else None

    @property
    def last_event(self) -> Optional[EventMessage]:
        return self._shared.last_event if self._shared else None

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    @property
    def reconnect_delay(self) -> float:
        """Delay the next scheduled reconnect would wait."""
        if self._shared is None:
            return self.reconnect_initial_delay
        return self._shared.reconnect.delay

    @property
    def reconnect_controller(self) -> Optional[ReconnectionController]:
        return self._shared.reconnect if self._shared else None

    # ─── Subscribe / unsubscribe ─────────────────────────────

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register `listener`; the first subscriber opens the connection.

        Returns an idempotent disposer. When the last disposer runs the
        transport is closed and all cached state is dropped.
        """
        remove = self._listeners.subscribe(listener)

        if self._shared is None:
            self._shared = self._new_shared_state()
            logger.debug("multiplexer.state_created")
        shared = self._shared
        if len(self._listeners) == 1 and shared.transport is None:
            self._connect(shared)

        disposed = False

        def unsubscribe() -> None:
            nonlocal disposed
            if disposed:
                return
            disposed = True
            remove()
            if len(self._listeners) == 0:
                self._teardown()

        return unsubscribe

    def reconnect(self) -> None:
        """Manual reconnect: backoff to floor, drop the current socket, dial now."""
        shared = self._shared
        if shared is None or len(self._listeners) == 0:
            logger.info("multiplexer.reconnect_ignored", reason="no_subscribers")
            return

        logger.info("multiplexer.manual_reconnect")
        shared.reconnect.reset()
        was_connected = shared.status is ConnectionStatus.CONNECTED
        self._connect(shared)
        shared.status = ConnectionStatus.DISCONNECTED
        if was_connected:
            self._listeners.notify()

    # ─── Connection management (sole writer of shared state) ─

    def _new_shared_state(self) -> SharedConnectionState:
        return SharedConnectionState(
            reconnect=ReconnectionController(
                initial_delay=self.reconnect_initial_delay,
                max_delay=self.reconnect_max_delay,
            ),
            keepalive=KeepalivePinger(self.ping_interval),
        )

    def _resolve_url(self) -> str:
        return self._url() if callable(self._url) else self._url

    def _connect(self, shared: SharedConnectionState) -> None:
        self._close_transport(shared)
        shared.reconnect.cancel()
        shared.intentional_close = False

        url = self._resolve_url()
        transport = self._transport_factory(url)
        shared.transport = transport
        transport.on_open = lambda: self._on_open(shared, transport)
        transport.on_message = lambda text: self._on_message(shared, transport, text)
        transport.on_close = lambda: self._on_close(shared, transport)
        transport.on_error = lambda detail: self._on_error(shared, transport, detail)
        logger.info("multiplexer.connecting", url=redact_url(url))

    def _close_transport(self, shared: SharedConnectionState) -> None:
        """Detach handlers, then close. The close must never call back."""
        shared.keepalive.stop()
        transport, shared.transport = shared.transport, None
        if transport is None:
            return
        transport.on_open = None
        transport.on_message = None
        transport.on_close = None
        transport.on_error = None
        transport.close()

    def _teardown(self) -> None:
        shared, self._shared = self._shared, None
        if shared is None:
            return
        shared.intentional_close = True
        shared.reconnect.cancel()
        self._close_transport(shared)
        logger.info("multiplexer.teardown")

    def _is_current(self, shared: SharedConnectionState, transport: Transport) -> bool:
        return self._shared is shared and shared.transport is transport

    # ─── Transport callbacks ─────────────────────────────────

    def _on_open(self, shared: SharedConnectionState, transport: Transport) -> None:
        if not self._is_current(shared, transport):
            return
        shared.status = ConnectionStatus.CONNECTED
        shared.error = None
        shared.reconnect.reset()
        shared.keepalive.start(transport)
        logger.info("multiplexer.connected", subscribers=len(self._listeners))
        self._listeners.notify()

    def _on_message(
        self, shared: SharedConnectionState, transport: Transport, text: str
    ) -> None:
        if not self._is_current(shared, transport):
            return
        if text == PONG:
            return

        msg = parse_frame(text)
        if msg is None:
            logger.debug("multiplexer.frame_discarded", size=len(text))
            return

        if isinstance(msg, (SnapshotMessage, TickMessage)):
            if msg.payload is not None:
                shared.snapshot = msg.payload
        elif isinstance(msg, EventMessage):
            shared.last_event = msg
        self._listeners.notify()

    def _on_close(self, shared: SharedConnectionState, transport: Transport) -> None:
        if not self._is_current(shared, transport):
            return
        shared.status = ConnectionStatus.DISCONNECTED
        shared.transport = None
        shared.keepalive.stop()
        logger.info("multiplexer.disconnected", intentional=shared.intentional_close)
        self._listeners.notify()

        # A listener may have unsubscribed during notify and torn us down.
        if self._shared is not shared:
            return
        if not shared.intentional_close and len(self._listeners) > 0:
            shared.reconnect.schedule(lambda: self._on_reconnect_due(shared))

    def _on_error(
        self, shared: SharedConnectionState, transport: Transport, detail: str
    ) -> None:
        if not self._is_current(shared, transport):
            return
        shared.error = f"{TRANSPORT_ERROR}: {detail}" if detail else TRANSPORT_ERROR
        logger.warning("multiplexer.transport_error", error=detail)
        self._listeners.notify()

    def _on_reconnect_due(self, shared: SharedConnectionState) -> None:
        if self._shared is not shared or len(self._listeners) == 0:
            return
        if shared.transport is not None:
            return
        self._connect(shared)
