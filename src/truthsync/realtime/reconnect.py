"""Reconnection controller — exponential backoff for the live stream.

State machine:

    IDLE ──schedule()──► SCHEDULED ──timer fires──► IDLE (attempt runs)
      ▲                      │
      └──── cancel()/reset() ┘

Delay before attempt k of consecutive failures: min(floor * 2**(k-1), ceiling).
Only one attempt may be pending; a second schedule() while SCHEDULED is
a no-op, so a burst of closes can't stack timers or skip ahead in the
backoff sequence.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

import structlog

logger = structlog.get_logger()


class ReconnectState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"


class ReconnectionController:
    def __init__(self, *, initial_delay: float = 1.0, max_delay: float = 30.0):
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.delay = initial_delay  # delay the *next* schedule() will use
        self.scheduled_delay: Optional[float] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> ReconnectState:
        if self._handle is not None:
            return ReconnectState.SCHEDULED
        return ReconnectState.IDLE

    def schedule(self, attempt: Callable[[], None]) -> bool:
        """Schedule `attempt` after the current delay, then double the delay.

        Returns False if an attempt is already pending.
        """
        if self._handle is not None:
            return False

        delay = self.delay
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, attempt)
        self.scheduled_delay = delay
        self.delay = min(delay * 2, self.max_delay)
        logger.info("reconnect.scheduled", delay=delay, next_delay=self.delay)
        return True

    def cancel(self) -> None:
        """Drop a pending attempt, keeping the current delay."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.scheduled_delay = None

    def reset(self) -> None:
        """Back to IDLE with the delay at its floor (successful open / manual)."""
        self.cancel()
        self.delay = self.initial_delay

    def _fire(self, attempt: Callable[[], None]) -> None:
        self._handle = None
        self.scheduled_delay = None
        attempt()
