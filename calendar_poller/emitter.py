"""Minimal subscribe-by-name event emitter."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Registers listeners per event name and calls them synchronously in order.

    A listener that raises is logged and skipped; it never interrupts the
    emitter's caller or the remaining listeners.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Subscribe ``listener`` to ``event``. Returns the listener (decorator friendly)."""
        self._listeners.setdefault(event, []).append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Subscribe ``listener`` for a single delivery of ``event``."""

        def _wrapper(*args: Any) -> Any:
            self.off(event, _wrapper)
            return listener(*args)

        self.on(event, _wrapper)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Unsubscribe ``listener``; unknown listeners are ignored."""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Deliver ``event`` to its listeners.

        Returns:
            True if at least one listener was registered
        """
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener %r for event %r failed", listener, event)
        return bool(listeners)
