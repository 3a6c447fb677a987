"""Keepalive pinger — periodic "ping" text frames on the open stream.

Learn: The engine treats any text frame as proof of life for the
WebSocket user (it drives its ws_user_connected flag). The probe is the
bare string "ping", never JSON, so it can't be mistaken for payload.

The pinger never watches for the "pong". A silent engine does not force
a reconnect. Only a transport-level close does.
"""

from typing import Optional

from truthsync.realtime.timers import PeriodicTask
from truthsync.realtime.transport import Transport
from truthsync.schemas.stream import PING


class KeepalivePinger:
    def __init__(self, interval: float = 25.0):
        self.interval = interval
        self._transport: Optional[Transport] = None
        self._timer = PeriodicTask("truthsync-keepalive", interval, self._ping)

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self, transport: Transport) -> None:
        """Begin pinging `transport`. Restarts if already running."""
        self.stop()
        self._transport = transport
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self._transport = None

    def _ping(self) -> None:
        transport = self._transport
        if transport is not None and transport.is_open:
            transport.send(PING)
