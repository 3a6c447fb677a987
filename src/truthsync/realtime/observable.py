"""Minimal publish/subscribe primitive.

Learn: "notify" is just "call every registered callback". Listeners take
no arguments; they re-read whatever state they care about from the
object that notified them. That keeps fan-out free of any UI framework
and means a slow consumer can never see a half-applied update.
"""

from typing import Callable

import structlog

logger = structlog.get_logger()

Listener = Callable[[], None]
Unsubscribe = Callable[[], None]


class Subject:
    """A set of zero-argument callbacks with subscribe/notify."""

    def __init__(self, name: str = "subject"):
        self.name = name
        self._listeners: dict[int, Listener] = {}
        self._next_token = 0

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register a listener. The returned callable removes it (idempotent).

        The same callable may be registered twice; each registration is
        counted and removed separately.
        """
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def notify(self) -> None:
        """Invoke every listener in registration order.

        A failing listener is logged and skipped; the rest still run.
        """
        for listener in list(self._listeners.values()):
            try:
                listener()
            except Exception:
                logger.exception("subject.listener_failed", subject=self.name)
