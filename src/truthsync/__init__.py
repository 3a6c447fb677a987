"""truthsync — real-time state synchronization for the trading dashboard.

One shared WebSocket feeds every consumer the latest engine snapshot.
When the socket is down, consumers fall back to REST polling. A periodic
heartbeat keeps the engine's dead-man's switch from pausing trading.
"""

__version__ = "0.1.0"
