"""Non-blocking state broadcast to subscribers."""
import asyncio
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog

logger = structlog.get_logger(__name__)


class Subscription:
    """A subscriber's bounded inbox of state messages."""

    def __init__(self, broadcaster: "StateBroadcaster", maxsize: int):
        self.id = uuid4().hex[:8]
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self._broadcaster = broadcaster

    def offer(self, message: Dict[str, Any]) -> bool:
        """Enqueue without blocking. Returns False if the message was dropped."""
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> Dict[str, Any]:
        """Wait for the next message."""
        return await self.queue.get()

    def get_nowait(self) -> Dict[str, Any]:
        return self.queue.get_nowait()

    def pending(self) -> int:
        return self.queue.qsize()

    def close(self):
        """Detach from the broadcaster."""
        self._broadcaster.unsubscribe(self)


class StateBroadcaster:
    """
    Fan state messages out to every subscriber.

    publish() never waits on a subscriber: a full inbox drops that message
    for that subscriber only.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, initial: Optional[Dict[str, Any]] = None) -> Subscription:
        """Attach a subscriber, optionally seeding it with an initial message."""
        subscription = Subscription(self, self.queue_size)
        if initial is not None:
            subscription.offer(initial)
        self._subscribers[subscription.id] = subscription
        logger.info("broadcast.subscribed", subscriber=subscription.id, total=self.subscriber_count)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        if self._subscribers.pop(subscription.id, None) is not None:
            logger.info(
                "broadcast.unsubscribed", subscriber=subscription.id, total=self.subscriber_count
            )

    def publish(self, message: Dict[str, Any]) -> int:
        """
        Deliver a message to all subscribers.

        Returns:
            Number of subscribers that accepted the message
        """
        delivered = 0
        subscribers: List[Subscription] = list(self._subscribers.values())
        for subscription in subscribers:
            if subscription.offer(message):
                delivered += 1
            else:
                logger.debug(
                    "broadcast.message_dropped",
                    subscriber=subscription.id,
                    dropped=subscription.dropped,
                )
        return delivered
