"""Observer registry used to hand hub events to application code."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

from yt_pubsub.schema.events import HubEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[HubEvent], Any]

NOTIFIED = "notified"


class EventDispatcher:
    """Keeps listeners per event name and calls them in registration order."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventListener]] = {}

    def on(self, event_name: str, listener: EventListener) -> EventListener:
        self._listeners.setdefault(event_name, []).append(listener)
        logger.debug(
            "Added %s listener (%s)",
            event_name,
            getattr(listener, "__name__", repr(listener)),
        )
        return listener

    def off(self, event_name: str, listener: EventListener) -> bool:
        """Remove a listener; returns True when it was registered."""

        listeners = self._listeners.get(event_name, [])
        if listener not in listeners:
            return False
        listeners.remove(listener)
        return True

    def listener(self, event_name: str) -> Callable[[EventListener], EventListener]:
        """Decorator form of :meth:`on`."""

        def decorator(func: EventListener) -> EventListener:
            return self.on(event_name, func)

        return decorator

    def listeners(self, event_name: str) -> list[EventListener]:
        return list(self._listeners.get(event_name, []))

    async def emit(self, event_name: str, event: HubEvent) -> int:
        """Call every listener for ``event_name``; returns how many were called.

        A failing listener is logged and does not stop the remaining ones.
        """

        listeners = self.listeners(event_name)
        for listener in listeners:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001 - listener errors stay out of request handling
                logger.exception("Listener for %s event failed", event_name)
        return len(listeners)
