"""
Event Publishing

Outbound notifications (test assigned, test completed, module assigned)
are handed to an EventPublisher. Delivery is best effort: `publish_safely`
logs publisher failures and never lets them reach the operation that raised
the event.
"""

import abc
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from quizportal.common.logger import app_logger
from quizportal.common.serialization import serialize
from quizportal.common.utils import utc_now

logger = app_logger.getChild("events")

TEST_ASSIGNED = "test.assigned"
TEST_COMPLETED = "test.completed"
MODULE_ASSIGNED = "module.assigned"


@dataclass(frozen=True)
class Event:
    """An outbound event as recorded by in-process publishers."""
    event_type: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=utc_now)


class EventPublisher(abc.ABC):
    """Interface to the notification system."""

    @abc.abstractmethod
    async def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        """
        Publish an event.

        Args:
            event_type: Event name, e.g. "test.completed"
            payload: JSON-compatible event body
        """
        pass


class LoggingEventPublisher(EventPublisher):
    """Publisher that writes events to the application log."""

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info(f"Event {event_type}", extra={"data": {"event": event_type, **payload}})


class InMemoryEventPublisher(EventPublisher):
    """Publisher that keeps events in memory, for development and tests."""

    def __init__(self):
        self.events: List[Event] = []

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append(Event(event_type=event_type, payload=payload))

    def of_type(self, event_type: str) -> List[Event]:
        return [event for event in self.events if event.event_type == event_type]


async def publish_safely(publisher: EventPublisher, event_type: str, payload: Dict[str, Any]) -> bool:
    """
    Publish an event, swallowing and logging any publisher failure.

    Returns:
        True if the publisher accepted the event, False otherwise
    """
    try:
        await publisher.publish(event_type, serialize(payload))
        return True
    except Exception as e:
        logger.error(f"Failed to publish {event_type} event: {e}", exc_info=True)
        return False
