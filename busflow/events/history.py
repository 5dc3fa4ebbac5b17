"""Bounded in-memory history of published events. Diagnostic only, never replayed."""

import logging
from collections import deque

from busflow.events.models import Event

logger = logging.getLogger(__name__)


class EventHistory:
    """FIFO ring buffer: at capacity, recording evicts the oldest event."""

    def __init__(self, max_size: int = 100) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._max_size = max_size
        self._events: deque[Event] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._events)

    def record(self, event: Event) -> None:
        """Append event, evicting the oldest one when full."""
        self._events.append(event)

    def query(self, topic: str | None = None) -> list[Event]:
        """Return events in insertion order, optionally filtered by exact topic."""
        if topic is None:
            return list(self._events)
        return [e for e in self._events if e.topic == topic]

    def clear(self) -> None:
        count = len(self._events)
        self._events.clear()
        logger.debug("EventHistory cleared %d events", count)
