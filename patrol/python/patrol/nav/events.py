"""
patrol.nav.events - Fire-and-forget agent notifications.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Event:
    """A named broadcast point with any number of listeners (including none)."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Listener:
        """Register listener; returns it so this can be used as a decorator."""
        if listener not in self._listeners:
            self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> bool:
        before = len(self._listeners)
        self._listeners = [fn for fn in self._listeners if fn is not listener]
        return len(self._listeners) != before

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, *args: Any) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(*args)
            except Exception:
                logger.exception("Error in %s listener %r", self.name, listener)

    __call__ = emit


class AgentEvents:
    """The notification surface of a NavigationAgent."""

    def __init__(self) -> None:
        self.waypoint_reached = Event("waypoint_reached")  # (index)
        self.movement_complete = Event("movement_complete")
        self.path_blocked = Event("path_blocked")
        self.path_found = Event("path_found")

    def __iter__(self):
        return iter(
            (self.waypoint_reached, self.movement_complete, self.path_blocked, self.path_found)
        )

    def clear(self) -> None:
        for event in self:
            event._listeners.clear()
