# lanscout - Events
"""Minimal in-process event bus for mapping-change notifications."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger("lanscout.events")


@dataclass(frozen=True)
class MappingDeletedEvent:
    """An IP-to-MAC mapping was removed elsewhere in the system."""
    ip: str
    mac: str
    family: int = 4


class EventBus:
    """
    Synchronous publish/subscribe keyed by event type.

    ``subscribe`` returns a callable that removes the subscription, so
    owners can tear down exactly what they registered.
    """

    def __init__(self):
        self._handlers: defaultdict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable[[Any], None]) -> Callable[[], None]:
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers[event_type].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event: Any) -> None:
        for handler in list(self._handlers[type(event)]):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler {handler!r} failed for {event}: {e}")

    def subscriber_count(self, event_type: type) -> int:
        return len(self._handlers[event_type])
