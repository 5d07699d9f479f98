"""Change listeners for the in-process reactive stores."""

from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
Unsubscribe = Callable[[], None]


class ListenerSet:
    """Synchronous fan-out of "something changed" notifications.

    Listeners run in subscription order on the caller's stack. A listener that
    raises is logged and skipped so one subscriber cannot block the others.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("store listener failed")


__all__ = ["Listener", "ListenerSet", "Unsubscribe"]
