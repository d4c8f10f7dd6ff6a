"""Structured per-investigation event log.

Every event is mirrored to loguru, kept in a bounded buffer per investigation,
and pushed to subscribers. The SSE endpoint replays the buffer and then follows
live events through ``stream``.
"""
from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, AsyncIterator, Callable

from loguru import logger

from intervox.models.events import LogCategory, LogEvent, LogLevel

MAX_EVENTS = 500

Listener = Callable[[LogEvent], None]

_LOGURU_LEVELS = {
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARN: "WARNING",
    LogLevel.ERROR: "ERROR",
}


class EventLog:
    def __init__(self, max_events: int = MAX_EVENTS):
        self.max_events = max_events
        self._stores: dict[str, deque[LogEvent]] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._global_listeners: list[Listener] = []

    def log(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        details: dict[str, Any] | None = None,
        target_id: str | None = None,
    ) -> LogEvent:
        event = LogEvent(
            level=level,
            category=category,
            message=message,
            details=details,
            target_id=target_id,
        )
        logger.log(
            _LOGURU_LEVELS[level],
            f"[{category.value}] {message}" + (f" {details}" if details else ""),
        )

        if target_id:
            store = self._stores.get(target_id)
            if store is None:
                store = deque(maxlen=self.max_events)
                self._stores[target_id] = store
            store.append(event)
            for listener in list(self._listeners.get(target_id, ())):
                self._notify(listener, event)

        for listener in list(self._global_listeners):
            self._notify(listener, event)
        return event

    def debug(self, category: LogCategory, message: str, details: dict[str, Any] | None = None, target_id: str | None = None) -> LogEvent:
        return self.log(LogLevel.DEBUG, category, message, details, target_id)

    def info(self, category: LogCategory, message: str, details: dict[str, Any] | None = None, target_id: str | None = None) -> LogEvent:
        return self.log(LogLevel.INFO, category, message, details, target_id)

    def warn(self, category: LogCategory, message: str, details: dict[str, Any] | None = None, target_id: str | None = None) -> LogEvent:
        return self.log(LogLevel.WARN, category, message, details, target_id)

    def error(self, category: LogCategory, message: str, details: dict[str, Any] | None = None, target_id: str | None = None) -> LogEvent:
        return self.log(LogLevel.ERROR, category, message, details, target_id)

    @staticmethod
    def _notify(listener: Listener, event: LogEvent) -> None:
        try:
            listener(event)
        except Exception:
            logger.exception("Event listener failed")

    def get_events(self, target_id: str) -> list[LogEvent]:
        return list(self._stores.get(target_id, ()))

    def subscribe(self, target_id: str, listener: Listener) -> Callable[[], None]:
        listeners = self._listeners.setdefault(target_id, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            current = self._listeners.get(target_id)
            if current and listener in current:
                current.remove(listener)
                if not current:
                    del self._listeners[target_id]

        return unsubscribe

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        self._global_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._global_listeners:
                self._global_listeners.remove(listener)

        return unsubscribe

    def clear_events(self, target_id: str) -> None:
        self._stores.pop(target_id, None)

    async def stream(self, target_id: str) -> AsyncIterator[LogEvent]:
        """Yield buffered events for ``target_id`` and then live ones until cancelled."""
        queue: asyncio.Queue[LogEvent] = asyncio.Queue()
        unsubscribe = self.subscribe(target_id, queue.put_nowait)
        try:
            for event in self.get_events(target_id):
                yield event
            while True:
                yield await queue.get()
        finally:
            unsubscribe()


events = EventLog()
