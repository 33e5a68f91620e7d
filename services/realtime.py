"""
In-process pub/sub for realtime change notifications.

Route handlers publish after a successful commit; WebSocket views subscribe
for as long as they are open. Topics used by the API:

    messages:<receiver_id>        new direct messages for a user
    trip-discussion:<trip_id>     new posts in a trip discussion

Publishing is thread-safe (sync routes run in the threadpool); each
subscriber receives events on the event loop it subscribed from.
"""
from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import Any, Dict, Set

from utils.logger import get_logger

logger = get_logger(__name__)


def message_topic(receiver_id: str) -> str:
    return f"messages:{receiver_id}"


def discussion_topic(trip_id: str) -> str:
    return f"trip-discussion:{trip_id}"


class Subscription:
    """Receiving end of a topic subscription."""

    def __init__(self, topic: str, loop: asyncio.AbstractEventLoop):
        self.topic = topic
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: Dict[str, Any]) -> None:
        if not self.closed:
            self.queue.put_nowait(event)

    async def get(self) -> Dict[str, Any]:
        """Wait for the next event, in arrival order."""
        return await self.queue.get()


class Hub:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Set[Subscription]] = {}

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic, ()))

    def _add(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.setdefault(subscription.topic, set()).add(subscription)

    def _remove(self, subscription: Subscription) -> None:
        subscription.closed = True
        with self._lock:
            subscribers = self._subscriptions.get(subscription.topic)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._subscriptions[subscription.topic]

    @asynccontextmanager
    async def subscribe(self, topic: str):
        """
        Subscribe to `topic` for the duration of the block.

        The subscription is removed when the block exits, whether normally,
        by cancellation or by an exception.
        """
        subscription = Subscription(topic, asyncio.get_running_loop())
        self._add(subscription)
        logger.debug("Subscribed to %s", topic)
        try:
            yield subscription
        finally:
            self._remove(subscription)
            logger.debug("Unsubscribed from %s", topic)

    def publish(self, topic: str, event: Dict[str, Any]) -> int:
        """Deliver `event` to every current subscriber of `topic`. Returns the subscriber count."""
        with self._lock:
            subscribers = list(self._subscriptions.get(topic, ()))
        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription._deliver, event)
            except RuntimeError:
                # loop already closed; the owning view is going away
                logger.warning("Dropping event for closed subscriber on %s", topic)
        return len(subscribers)


hub = Hub()
