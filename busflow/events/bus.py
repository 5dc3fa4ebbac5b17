"""In-process event bus: publish -> history -> synchronous delivery to subscribers.

Delivery runs on the caller's stack, in registration order. Listeners may
publish, subscribe or unsubscribe while being called: each publish works on a
snapshot of the subscriptions that matched when it started.
"""

import logging
import time
from collections.abc import Mapping
from typing import Any

from busflow.events.history import EventHistory
from busflow.events.matching import topic_matches
from busflow.events.models import Event, EventListener, Subscription
from busflow.events.reply import REPLY_KEY, ReplyChannel
from busflow.settings import get_setting

logger = logging.getLogger(__name__)


class EventBus:
    """Topic-routed pub/sub bus with bounded history and request/reply."""

    def __init__(self, debug: bool = False, max_history_size: int = 100) -> None:
        self._debug = debug
        self._history = EventHistory(max_history_size)
        self._subscriptions: dict[str, Subscription] = {}
        self._closed = False

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> "EventBus":
        """Build a bus from the event_bus section of settings."""
        return cls(
            debug=bool(get_setting(settings, "event_bus.debug", False)),
            max_history_size=int(get_setting(settings, "event_bus.max_history_size", 100)),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(
        self,
        topic: str,
        data: Any = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> Event:
        """Record the event and deliver it to every matching subscription."""
        event = Event(topic=topic, data=data, timestamp=time.time(), metadata=metadata)
        if self._closed:
            logger.warning("EventBus is destroyed; dropping event %s", topic)
            return event

        self._history.record(event)

        targets = [
            sub for sub in self._subscriptions.values() if topic_matches(sub.topic, topic)
        ]
        if self._debug:
            logger.debug(
                "EventBus sent %s to %d/%d subscribers",
                topic,
                len(targets),
                len(self._subscriptions),
            )

        for sub in targets:
            try:
                sub.deliver(event)
            except Exception as e:
                logger.exception(
                    "EventBus listener %s failed for event %s: %s", sub.id, topic, e
                )
        return event

    def subscribe(
        self,
        subscription_id: str,
        topic: str,
        listener: EventListener,
        closure: Any = None,
        custom_data: Any = None,
    ) -> None:
        """Register listener under a unique id. A duplicate id is logged and ignored."""
        if self._closed:
            logger.warning("EventBus is destroyed; ignoring subscription %s", subscription_id)
            return
        if subscription_id in self._subscriptions:
            logger.warning(
                "EventBus subscription with id %r already exists; skipping", subscription_id
            )
            return
        self._subscriptions[subscription_id] = Subscription(
            id=subscription_id,
            topic=topic,
            listener=listener,
            closure=closure,
            custom_data=custom_data,
        )
        if self._debug:
            logger.debug("EventBus subscribed %s -> %s", subscription_id, topic)

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription. Unknown ids are ignored."""
        if self._subscriptions.pop(subscription_id, None) is not None and self._debug:
            logger.debug("EventBus unsubscribed %s", subscription_id)

    def unsubscribe_all(self) -> None:
        count = len(self._subscriptions)
        self._subscriptions.clear()
        if self._debug:
            logger.debug("EventBus cleared %d subscriptions", count)

    def is_subscribed(self, subscription_id: str) -> bool:
        return subscription_id in self._subscriptions

    def list_active_subscription_ids(self) -> list[str]:
        """Return subscription ids in registration order."""
        return list(self._subscriptions)

    def request(
        self,
        topic: str,
        data: Any = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> ReplyChannel:
        """Publish a request carrying a one-shot reply channel and return the channel.

        Mapping payloads are copied with the channel added under "reply"; other
        payloads are wrapped as {"body": data, "reply": channel}. The channel
        never completes if no listener resolves it.
        """
        channel = ReplyChannel(topic)
        if isinstance(data, Mapping):
            payload = {**data, REPLY_KEY: channel}
        else:
            payload = {"body": data, REPLY_KEY: channel}
        self.publish(topic, payload, metadata)
        return channel

    def get_history(self, topic: str | None = None) -> list[Event]:
        """Recorded events, oldest first, optionally for one exact topic."""
        return self._history.query(topic)

    def clear_history(self) -> None:
        self._history.clear()

    def destroy(self) -> None:
        """Drop all subscriptions and history. Later publishes are ignored."""
        self.unsubscribe_all()
        self._history.clear()
        self._closed = True
        logger.info("EventBus destroyed")
