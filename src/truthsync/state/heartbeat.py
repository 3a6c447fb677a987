"""Heartbeat emitter — the engine's dead-man's switch.

Learn: The engine auto-pauses trading if no operator has checked in
for a while. While a TruthState is running we POST /api/v1/heartbeat
every 5 minutes, whether or not the stream is connected.

A missed heartbeat is the safety net doing its job, not a client error,
so failures are logged and swallowed.
"""

from typing import Awaitable, Callable

import structlog

from truthsync.api.errors import ApiError
from truthsync.realtime.timers import PeriodicTask

logger = structlog.get_logger()


class HeartbeatEmitter:
    def __init__(self, send: Callable[[], Awaitable[None]], interval: float = 300.0):
        self.send = send
        self.interval = interval
        self.sent = 0
        self.failed = 0
        self._timer = PeriodicTask("truthsync-heartbeat", interval, self._beat)

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    async def aclose(self) -> None:
        await self._timer.aclose()

    async def _beat(self) -> None:
        try:
            await self.send()
        except ApiError as e:
            self.failed += 1
            logger.warning("heartbeat.failed", error=str(e))
            return
        self.sent += 1
        logger.debug("heartbeat.sent", total=self.sent)
