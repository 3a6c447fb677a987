"""Fallback poller — REST snapshots while the live stream is down.

Learn: Polls are fired, not awaited, on every tick. Two polls only
overlap if a fetch takes longer than the interval (5s by default), which
we accept instead of adding explicit mutual exclusion.

stop() does not cancel an in-flight fetch (aclose() does). Instead each
start() bumps a generation counter and a poll only applies its result
if its generation is still current, so a response that lands after the
stream came back (or after shutdown) is discarded.

On failure the previous snapshot is kept: stale-but-present beats a
blank dashboard.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from truthsync.realtime.observable import Subject
from truthsync.realtime.timers import PeriodicTask
from truthsync.schemas.stream import Snapshot

logger = structlog.get_logger()

Fetch = Callable[[], Awaitable[Snapshot]]


class FallbackPoller:
    def __init__(self, fetch: Fetch, interval: float = 5.0):
        self.fetch = fetch
        self.interval = interval
        self.snapshot: Optional[Snapshot] = None
        self.error: Optional[str] = None
        self.settled = False  # first poll finished, success or failure
        self.polls_started = 0
        self.updates = Subject("fallback_poller")

        self._generation = 0
        self._in_flight: set[asyncio.Task] = set()
        self._timer = PeriodicTask(
            "truthsync-fallback-poll", interval, self._fire_poll, immediate=True
        )

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self) -> None:
        if self.running:
            return
        self._generation += 1
        logger.info("poller.started", interval=self.interval)
        self._timer.start()

    def stop(self) -> None:
        if not self.running:
            return
        self._generation += 1
        self._timer.stop()
        logger.info("poller.stopped")

    async def aclose(self) -> None:
        """Stop polling and cancel fetches still in flight."""
        self._generation += 1
        await self._timer.aclose()
        for task in list(self._in_flight):
            task.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    def record(self, snapshot: Snapshot) -> None:
        """Apply a snapshot fetched outside the timer (manual refetch)."""
        self.snapshot = snapshot
        self.error = None
        self.settled = True
        self.updates.notify()

    def record_error(self, message: str) -> None:
        """Record a failed outside fetch. The last good snapshot is kept."""
        self.error = message
        self.settled = True
        self.updates.notify()

    def _fire_poll(self) -> None:
        self.polls_started += 1
        task = asyncio.create_task(self._poll(self._generation))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _poll(self, generation: int) -> None:
        try:
            snapshot = await self.fetch()
        except Exception as e:
            if generation != self._generation:
                return
            self.error = str(e) or e.__class__.__name__
            logger.warning("poller.fetch_failed", error=self.error)
        else:
            if generation != self._generation:
                return
            self.snapshot = snapshot
            self.error = None
        self.settled = True
        self.updates.notify()
