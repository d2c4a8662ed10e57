"""
In-process domain event bus.

The Unit of Work hands committed events here; subscribers forward them to
external systems (notification queue, gamification, audit). A failing
subscriber is logged and never affects the caller or other subscribers.
"""
from typing import Callable, Dict, Iterable, List, Optional

from domain.events import DomainEvent, DomainEventType
from logging_config import get_logger, log_error

logger = get_logger(__name__)

Handler = Callable[[DomainEvent], None]


class EventBus:

    def __init__(self):
        self._handlers: Dict[Optional[DomainEventType], List[Handler]] = {}

    def subscribe(self, handler: Handler, event_type: DomainEventType = None) -> None:
        """Register handler for one event type, or for every event when event_type is None"""
        self._handlers.setdefault(event_type, []).append(handler)

    def clear(self) -> None:
        self._handlers.clear()

    def publish(self, event: DomainEvent) -> None:
        handlers = self._handlers.get(event.event_type, []) + self._handlers.get(None, [])
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                log_error(
                    e,
                    event="event_handler_failed",
                    level="WARNING",
                    event_type=event.event_type.value,
                    event_id=str(event.event_id),
                    handler=getattr(handler, "__name__", repr(handler)),
                )

    def publish_all(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            logger.debug("domain_event_published", event_type=event.event_type.value, event_id=str(event.event_id))
            self.publish(event)


event_bus = EventBus()
