"""One-shot reply channel for request/reply over the bus.

The requester publishes a payload carrying a ReplyChannel; any listener that
receives it may resolve the channel. Only the first resolution counts. There
is no timeout: wrap the await in asyncio.wait_for when one is needed.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Callable, Generator

logger = logging.getLogger(__name__)

REPLY_KEY = "reply"

_PENDING = object()


class ReplyChannel:
    """Single-use, single-value completion object."""

    def __init__(self, topic: str | None = None) -> None:
        self.topic = topic
        self._value: Any = _PENDING
        self._waiters: list[asyncio.Future[Any]] = []
        self._callbacks: list[Callable[[Any], None]] = []

    @classmethod
    def from_payload(cls, data: Any) -> "ReplyChannel | None":
        """Extract the reply channel embedded in a request payload, if any."""
        if isinstance(data, Mapping):
            channel = data.get(REPLY_KEY)
            if isinstance(channel, cls):
                return channel
        return None

    @property
    def done(self) -> bool:
        return self._value is not _PENDING

    def result(self) -> Any:
        """Return the reply value. Raises LookupError if not resolved yet."""
        if self._value is _PENDING:
            raise LookupError(f"Reply for {self.topic!r} not resolved yet")
        return self._value

    def resolve(self, value: Any = None) -> bool:
        """Complete the channel with a value. Returns False if already completed."""
        if self.done:
            logger.debug("ReplyChannel for %s already resolved; ignoring", self.topic)
            return False
        self._value = value
        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(value)
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._run_callback(callback, value)
        return True

    def complete(self) -> bool:
        """Complete without a value (the awaiting side receives None)."""
        return self.resolve(None)

    def add_done_callback(self, callback: Callable[[Any], None]) -> None:
        """Call `callback(value)` on resolution, immediately if already resolved."""
        if self.done:
            self._run_callback(callback, self._value)
        else:
            self._callbacks.append(callback)

    def _run_callback(self, callback: Callable[[Any], None], value: Any) -> None:
        try:
            callback(value)
        except Exception as e:
            logger.exception("ReplyChannel callback failed for %s: %s", self.topic, e)

    async def wait(self) -> Any:
        """Wait for the reply value."""
        if self.done:
            return self._value
        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            return await fut
        finally:
            if fut in self._waiters:
                self._waiters.remove(fut)

    def __await__(self) -> Generator[Any, None, Any]:
        return self.wait().__await__()

    def __repr__(self) -> str:
        state = "done" if self.done else "pending"
        return f"<ReplyChannel topic={self.topic!r} {state}>"
