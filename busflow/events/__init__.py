"""Event Bus: in-process pub/sub with wildcard topics, history and request/reply."""

from busflow.events.bus import EventBus
from busflow.events.history import EventHistory
from busflow.events.matching import topic_matches
from busflow.events.models import Event, EventListener, Subscription
from busflow.events.reply import ReplyChannel
from busflow.events.scoped import ScopedSubscription, scoped_subscription
from busflow.events.topics import WorkflowTopics
from busflow.settings import load_settings

__all__ = [
    "Event",
    "EventBus",
    "EventHistory",
    "EventListener",
    "ReplyChannel",
    "ScopedSubscription",
    "Subscription",
    "WorkflowTopics",
    "get_default_bus",
    "reset_default_bus",
    "scoped_subscription",
    "topic_matches",
]

_default_bus: EventBus | None = None


def get_default_bus() -> EventBus:
    """Return the process-wide convenience bus, creating it from settings on first use.

    Library code should take an EventBus argument instead of calling this.
    """
    global _default_bus
    if _default_bus is None or _default_bus.closed:
        _default_bus = EventBus.from_settings(load_settings())
    return _default_bus


def reset_default_bus() -> None:
    """Destroy and forget the default bus (e.g. between tests)."""
    global _default_bus
    if _default_bus is not None:
        _default_bus.destroy()
    _default_bus = None
