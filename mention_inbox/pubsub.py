"""In-process publish/subscribe for real-time notifications.

Publishers never block: each subscriber owns a bounded queue and events
that do not fit are dropped for that subscriber with a warning. A
subscription receives every event published after ``subscribe()`` returns,
whether or not it has started iterating yet.

Example:
    pubsub = Pubsub()

    async with pubsub.subscribe(["mentions_dismissed"]) as events:
        async for event in events:
            print(event.key, event.payload)

    await pubsub.publish("mentions_dismissed", post.id, post)
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

MENTIONS_DISMISSED = "mentions_dismissed"


@dataclass
class PubsubEvent:
    """A published event.

    Attributes:
        topic: Event name, e.g. ``mentions_dismissed``.
        key: Identifier the event is about (a post id for dismissals).
        payload: The entity the event carries.
        published_at: When the event was published (UTC).
    """

    topic: str
    key: str
    payload: Any = None
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Subscription:
    """Async iterator over the events of a set of topics."""

    def __init__(self, pubsub: "Pubsub", topics: list[str], queue_size: int):
        self.pubsub = pubsub
        self.topics = list(topics)
        self.queue: asyncio.Queue[PubsubEvent] = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> PubsubEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self.queue.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Stop receiving events."""
        if not self.closed:
            self.closed = True
            self.pubsub._unsubscribe(self)

    async def aclose(self) -> None:
        self.close()


class Pubsub:
    """Topic based fan-out to asyncio queues. Subscribers on ``"*"`` receive every topic."""

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)

    async def publish(self, topic: str, key: str, payload: Any = None) -> int:
        """Publish an event and return the number of subscribers it reached."""
        event = PubsubEvent(topic=topic, key=key, payload=payload)
        delivered = 0

        for subscription in [*self._subscribers.get(topic, []), *self._subscribers.get("*", [])]:
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Subscriber queue full, dropping %s event for %s", topic, key)

        logger.debug("Published %s for %s to %d subscribers", topic, key, delivered)
        return delivered

    def subscribe(self, topics: list[str]) -> Subscription:
        """Register for events on ``topics``. Registration takes effect immediately."""
        subscription = Subscription(self, topics, self.queue_size)
        for topic in subscription.topics:
            self._subscribers[topic].append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        for topic in subscription.topics:
            if subscription in self._subscribers[topic]:
                self._subscribers[topic].remove(subscription)

    def subscriber_count(self, topic: str) -> int:
        """Number of subscriptions registered on a topic."""
        return len(self._subscribers.get(topic, []))
