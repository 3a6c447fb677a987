"""State accessor — the one object consumers talk to.

Learn: A TruthState merges two sources into one coherent view:

    live      ConnectionMultiplexer (shared WebSocket)
    fallback  FallbackPoller (REST, only while the socket is down)

and keeps the dead-man's-switch heartbeat running for as long as it is
open. Consumers either call view() whenever they like, or subscribe()
to be told when something changed and call view() then.

view() never raises. Errors from both channels are tracked separately
and merged with the live channel winning.

Usage:
    async with TruthState.from_settings() as truth:
        truth.subscribe(lambda: render(truth.view()))
        ...
"""

import functools
from dataclasses import dataclass
from typing import Optional

import structlog

from truthsync.api.client import TruthClient
from truthsync.api.errors import ApiError, is_auth_error
from truthsync.config import Settings
from truthsync.realtime.multiplexer import ConnectionMultiplexer
from truthsync.realtime.observable import Listener, Subject, Unsubscribe
from truthsync.realtime.transport import TransportFactory, WebSocketTransport
from truthsync.schemas.stream import EventMessage, Snapshot
from truthsync.state.heartbeat import HeartbeatEmitter
from truthsync.state.poller import FallbackPoller

logger = structlog.get_logger()


@dataclass(frozen=True)
class StateView:
    """What a consumer sees at one instant."""

    state: Optional[Snapshot]
    error: Optional[str]
    connected: bool
    loading: bool
    last_event: Optional[EventMessage] = None

    @property
    def unauthorized(self) -> bool:
        """The engine rejected our admin token; show a config hint."""
        return is_auth_error(self.error)


class TruthState:
    def __init__(
        self,
        multiplexer: ConnectionMultiplexer,
        client: TruthClient,
        *,
        poll_interval: float = 5.0,
        heartbeat_interval: float = 300.0,
    ):
        self.multiplexer = multiplexer
        self.client = client
        self.poller = FallbackPoller(client.fetch_state, poll_interval)
        self.heartbeat = HeartbeatEmitter(client.send_heartbeat, heartbeat_interval)
        self.updates = Subject("truth_state")

        self._owns_client = False
        self._loading = True
        self._unsubscribe_live: Optional[Unsubscribe] = None
        self._unsubscribe_poll: Optional[Unsubscribe] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        multiplexer: Optional[ConnectionMultiplexer] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> "TruthState":
        """Wire client + multiplexer from configuration.

        Pass an existing multiplexer to share one connection between
        several TruthState instances.
        """
        if settings is None:
            from truthsync.config import settings as default_settings

            settings = default_settings

        client = TruthClient(
            settings.api_url,
            settings.admin_token,
            timeout=settings.http_timeout_s,
        )
        if multiplexer is None:
            multiplexer = ConnectionMultiplexer(
                client.stream_url,
                transport_factory
                or functools.partial(
                    WebSocketTransport, open_timeout=settings.ws_open_timeout_s
                ),
                ping_interval=settings.ping_interval_s,
                reconnect_initial_delay=settings.reconnect_initial_delay_s,
                reconnect_max_delay=settings.reconnect_max_delay_s,
            )
        truth = cls(
            multiplexer,
            client,
            poll_interval=settings.poll_interval_s,
            heartbeat_interval=settings.heartbeat_interval_s,
        )
        truth._owns_client = True
        return truth

    # ─── Lifecycle ───────────────────────────────────────────

    @property
    def started(self) -> bool:
        return self._unsubscribe_live is not None

    def start(self) -> None:
        """Subscribe to the live stream and start heartbeat (+ poller if down)."""
        if self.started:
            return
        self._unsubscribe_poll = self.poller.updates.subscribe(self._on_poll_update)
        self._unsubscribe_live = self.multiplexer.subscribe(self._on_live_update)
        self.heartbeat.start()
        self._sync_poller()
        logger.info("truth_state.started", connected=self.multiplexer.connected)

    async def aclose(self) -> None:
        if self._unsubscribe_live is not None:
            self._unsubscribe_live()
            self._unsubscribe_live = None
        if self._unsubscribe_poll is not None:
            self._unsubscribe_poll()
            self._unsubscribe_poll = None
        await self.poller.aclose()
        await self.heartbeat.aclose()
        if self._owns_client:
            await self.client.aclose()
        logger.info("truth_state.closed")

    async def __aenter__(self) -> "TruthState":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ─── Consumer API ────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Be called (no args) after every live frame and every poll result."""
        return self.updates.subscribe(listener)

    def view(self) -> StateView:
        live = self.multiplexer.snapshot
        fallback = self.poller.snapshot
        connected = self.multiplexer.connected

        if connected:
            state = live if live is not None else fallback
        else:
            state = fallback if fallback is not None else live

        return StateView(
            state=state,
            error=self.multiplexer.error or self.poller.error,
            connected=connected,
            loading=self._loading and live is None,
            last_event=self.multiplexer.last_event,
        )

    async def refetch(self) -> Optional[Snapshot]:
        """One-shot REST fetch (e.g. right after a control command).

        A failure is recorded as the fallback error (the fallback snapshot
        stays) and None is returned; nothing is raised.
        """
        try:
            snapshot = await self.client.fetch_state()
        except ApiError as e:
            logger.warning("truth_state.refetch_failed", error=str(e))
            self.poller.record_error(str(e))
            return None
        self.poller.record(snapshot)
        return snapshot

    def reconnect(self) -> None:
        self.multiplexer.reconnect()

    # ─── Source callbacks ────────────────────────────────────

    def _sync_poller(self) -> None:
        if self.multiplexer.connected:
            self.poller.stop()
        else:
            self.poller.start()

    def _on_live_update(self) -> None:
        self._sync_poller()
        if self.multiplexer.connected:
            self._loading = False
        self.updates.notify()

    def _on_poll_update(self) -> None:
        if self.poller.settled:
            self._loading = False
        self.updates.notify()
