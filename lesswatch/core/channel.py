"""
Notification channel - typed, synchronous publish/subscribe.

Carries the three message kinds the compile pipeline reports through:
errors, warnings and raw compiler output lines. Presentation is left to
subscribers (see ``lesswatch.display``).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Dict, List, Union


class EventKind(enum.Enum):
    ERROR = "error"
    WARNING = "warning"
    LOG_LINE = "log-line"


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    kind = EventKind.ERROR


@dataclass(frozen=True)
class WarningEvent:
    message: str
    kind = EventKind.WARNING


@dataclass(frozen=True)
class LogLineEvent:
    data: bytes
    kind = EventKind.LOG_LINE


NotificationEvent = Union[ErrorEvent, WarningEvent, LogLineEvent]
Subscriber = Callable[[NotificationEvent], None]


class NotificationChannel:
    """Fan events out to subscribers in the order they subscribed."""

    def __init__(self) -> None:
        self._subscribers: Dict[EventKind, List[Subscriber]] = {kind: [] for kind in EventKind}

    def subscribe(self, kind: EventKind, callback: Subscriber) -> None:
        self._subscribers[kind].append(callback)

    def emit(self, event: NotificationEvent) -> None:
        for callback in list(self._subscribers[event.kind]):
            callback(event)

    def error(self, message: str) -> None:
        self.emit(ErrorEvent(message))

    def warning(self, message: str) -> None:
        self.emit(WarningEvent(message))

    def log_line(self, data: bytes) -> None:
        self.emit(LogLineEvent(data))


class RecordingChannel(NotificationChannel):
    """Channel that also keeps every emitted event; handy for tests and embedding."""

    def __init__(self) -> None:
        super().__init__()
        self.events: List[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)
        super().emit(event)

    def messages(self, kind: EventKind) -> List[str]:
        return [e.message for e in self.events if e.kind is kind and not isinstance(e, LogLineEvent)]
