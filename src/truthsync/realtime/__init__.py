"""Live side — the shared WebSocket and everything that keeps it alive.

Learn: Three pieces cooperate:
1. ConnectionMultiplexer — owns the one connection, fans frames out
2. ReconnectionController — exponential backoff after an unplanned close
3. KeepalivePinger — periodic "ping" frames while the socket is open
"""

from truthsync.realtime.multiplexer import ConnectionMultiplexer, ConnectionStatus
from truthsync.realtime.observable import Subject
from truthsync.realtime.transport import Transport, WebSocketTransport

__all__ = [
    "ConnectionMultiplexer",
    "ConnectionStatus",
    "Subject",
    "Transport",
    "WebSocketTransport",
]
