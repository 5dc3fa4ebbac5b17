"""Event and subscription models for the Event Bus."""

from dataclasses import dataclass
from typing import Any, Callable, Mapping

__all__ = ["Event", "EventListener", "Subscription"]

# listener(subscription_id, topic, data, closure, custom_data)
EventListener = Callable[[str, str, Any, Any, Any], None]


@dataclass(frozen=True)
class Event:
    """Immutable event passed through the bus and kept in history."""

    topic: str
    data: Any
    timestamp: float
    metadata: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class Subscription:
    """Registered listener for a topic pattern. Identity is the id."""

    id: str
    topic: str
    listener: EventListener
    closure: Any = None
    custom_data: Any = None

    def deliver(self, event: Event) -> None:
        self.listener(self.id, event.topic, event.data, self.closure, self.custom_data)
