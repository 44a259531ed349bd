"""Notification interface for analyzer events."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class EventName(str, Enum):
    """Event categories delivered to listeners."""

    RESULT_PRODUCED = "result-produced"
    SESSION_ADDED = "session-added"
    SESSION_REMOVED = "session-removed"
    SESSION_UPDATED = "session-updated"
    SESSION_TOGGLED = "session-toggled"
    ANALYZER_STARTED = "analyzer-started"
    ANALYZER_STOPPED = "analyzer-stopped"
    RESULTS_CLEARED = "results-cleared"
    SESSIONS_IMPORTED = "sessions-imported"


class EventBus:
    """Synchronous publish/subscribe hub.

    A failing listener is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: dict[EventName, list[Listener]] = defaultdict(list)

    def on(self, event: EventName, listener: Listener) -> None:
        self._listeners[EventName(event)].append(listener)

    def off(self, event: EventName, listener: Listener) -> None:
        listeners = self._listeners.get(EventName(event), [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: EventName, payload: Any = None) -> None:
        for listener in list(self._listeners.get(EventName(event), [])):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s failed", event.value)
