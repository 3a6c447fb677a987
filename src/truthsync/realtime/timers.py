"""Owned, cancellable periodic tasks.

Learn: Same shape as a worker run_loop (sleep, act, log, keep going on
failure) but owned by whoever started it. start() is idempotent and
stop() is synchronous, so it can be called from transport callbacks and
teardown paths without awaiting. Every owner must stop its timers on
every teardown path; a leaked periodic task is a bug.
"""

import asyncio
import inspect
from contextlib import suppress
from typing import Awaitable, Callable, Optional, Union

import structlog

logger = structlog.get_logger()

Action = Callable[[], Union[Awaitable[None], None]]


class PeriodicTask:
    """Runs `action` every `interval` seconds until stopped.

    With immediate=True the first run happens right away instead of
    after one interval.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        action: Action,
        *,
        immediate: bool = False,
    ):
        self.name = name
        self.interval = interval
        self.action = action
        self.immediate = immediate
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_loop(), name=self.name)

    def stop(self) -> None:
        """Cancel the loop. Safe to call when not running."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        """Stop and wait for the loop to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def _run_loop(self) -> None:
        if self.immediate:
            await self._tick()
        while True:
            await asyncio.sleep(self.interval)
            await self._tick()

    async def _tick(self) -> None:
        try:
            result = self.action()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("periodic_task.error", task=self.name)
