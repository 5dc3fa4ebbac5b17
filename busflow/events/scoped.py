"""Scoped subscriptions: acquire a subscription, get back its disposer.

Host environments (UI components, request scopes, test fixtures) call
`dispose()` from their own cleanup hook, or use the object as a context manager.
"""

import time
import uuid
from typing import TYPE_CHECKING, Any

from busflow.events.models import EventListener

if TYPE_CHECKING:
    from busflow.events.bus import EventBus


def generate_subscription_id(prefix: str = "subscription") -> str:
    """Time-based id with a random suffix. Uniqueness is not guaranteed."""
    return f"{prefix}.{int(time.time() * 1000)}.{uuid.uuid4().hex[:9]}"


class ScopedSubscription:
    """A live subscription owned by a scope. Disposing it is idempotent."""

    def __init__(self, bus: "EventBus", subscription_id: str, topic: str) -> None:
        self._bus = bus
        self.id = subscription_id
        self.topic = topic
        self._disposed = False

    @property
    def active(self) -> bool:
        return not self._disposed and self._bus.is_subscribed(self.id)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._bus.unsubscribe(self.id)

    def __enter__(self) -> "ScopedSubscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()


def scoped_subscription(
    bus: "EventBus",
    topic: str,
    listener: EventListener,
    subscription_id: str | None = None,
    closure: Any = None,
    custom_data: Any = None,
) -> ScopedSubscription:
    """Subscribe listener to topic and return the handle whose dispose() undoes it."""
    sid = subscription_id or generate_subscription_id()
    taken = bus.is_subscribed(sid)
    bus.subscribe(sid, topic, listener, closure, custom_data)
    scoped = ScopedSubscription(bus, sid, topic)
    if taken or not bus.is_subscribed(sid):
        # Registration was rejected; never dispose someone else's subscription.
        scoped._disposed = True
    return scoped
