"""
Event outbox.

Each component records what happened in its own outbox. The caller
drains it and chooses where the events go.
"""

import logging
from typing import Any, Iterable, List

from models import DomainEvent, EventType

logger = logging.getLogger(__name__)


class EventOutbox:
    def __init__(self):
        self._pending: List[DomainEvent] = []

    def record(self, event_type: EventType, **payload: Any) -> DomainEvent:
        event = DomainEvent(type=event_type, payload=payload)
        self._pending.append(event)
        return event

    def extend(self, events: Iterable[DomainEvent]) -> None:
        self._pending.extend(events)

    def drain(self) -> List[DomainEvent]:
        events, self._pending = self._pending, []
        return events

    def __len__(self) -> int:
        return len(self._pending)


def deliver(events: Iterable[DomainEvent], sink) -> int:
    """
    Hand each event to `sink.publish`.
    A failing delivery is logged and skipped; returns the number delivered.
    """
    delivered = 0
    for event in events:
        try:
            sink.publish(event)
            delivered += 1
        except Exception:
            logger.exception(f"Failed to deliver event {event.type.value}")
    return delivered
