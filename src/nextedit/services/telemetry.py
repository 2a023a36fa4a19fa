"""In-process telemetry bus for suggestion lifecycle events."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Mapping, Protocol

LOGGER = logging.getLogger(__name__)

_EVENT_LISTENERS: dict[str, list[Callable[[dict[str, Any]], None]]] = {}

SUGGESTION_EVENTS: tuple[str, ...] = (
    "suggestion.requested",
    "suggestion.skipped",
    "suggestion.superseded",
    "suggestion.classified",
    "suggestion.published",
    "suggestion.collaborator_failed",
    "suggestion.anchor_unresolved",
    "suggestion.applied",
    "suggestion.apply_failed",
)


@dataclass(slots=True)
class SuggestionEvent:
    """A single telemetry record captured from :func:`emit`."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class TelemetrySink(Protocol):
    """Sink interface used to collect telemetry events."""

    def record(self, event: SuggestionEvent) -> None:  # pragma: no cover - protocol stub
        ...


class InMemoryTelemetrySink:
    """Simple ring-buffer telemetry sink for local inspection and tests."""

    def __init__(self, capacity: int = 200) -> None:
        self._capacity = max(10, capacity)
        self._buffer: deque[SuggestionEvent] = deque(maxlen=self._capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, event: SuggestionEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def tail(self, limit: int | None = None) -> list[SuggestionEvent]:
        with self._lock:
            events = list(self._buffer)
        if limit is None or limit >= len(events):
            return events
        return events[-limit:]

    def names(self) -> list[str]:
        return [event.name for event in self.tail()]

    def attach(self, event_names: tuple[str, ...] = SUGGESTION_EVENTS) -> Callable[[], None]:
        """Subscribe this sink to ``event_names``; returns a detach callback."""

        def _listener(payload: dict[str, Any]) -> None:
            name = str(payload.pop("event", ""))
            self.record(SuggestionEvent(name=name, payload=payload))

        for name in event_names:
            register_event_listener(name, _listener)

        def _detach() -> None:
            for name in event_names:
                unregister_event_listener(name, _listener)

        return _detach

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


def register_event_listener(event_name: str, callback: Callable[[dict[str, Any]], None]) -> None:
    """Register a callback invoked whenever :func:`emit` fires *event_name*."""

    if not event_name or callback is None:
        return
    listeners = _EVENT_LISTENERS.setdefault(event_name, [])
    if callback not in listeners:
        listeners.append(callback)


def unregister_event_listener(event_name: str, callback: Callable[[dict[str, Any]], None]) -> None:
    listeners = _EVENT_LISTENERS.get(event_name)
    if not listeners:
        return
    if callback in listeners:
        listeners.remove(callback)
    if not listeners:
        _EVENT_LISTENERS.pop(event_name, None)


def emit(event_name: str, payload: Mapping[str, Any] | None = None) -> None:
    """Broadcast a structured telemetry event to in-process listeners."""

    if not event_name:
        return
    event_payload = {"event": event_name}
    if payload:
        event_payload.update(payload)
    listeners = list(_EVENT_LISTENERS.get(event_name, ()))
    for callback in listeners:
        try:
            callback(dict(event_payload))
        except Exception:  # pragma: no cover - listeners must not break emitters
            LOGGER.debug("Telemetry listener %s failed", callback, exc_info=True)
    LOGGER.debug("Telemetry emit %s: %s", event_name, event_payload)


__all__ = [
    "SUGGESTION_EVENTS",
    "SuggestionEvent",
    "TelemetrySink",
    "InMemoryTelemetrySink",
    "register_event_listener",
    "unregister_event_listener",
    "emit",
]
