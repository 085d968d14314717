"""In-process fan-out of newly persisted trades to live subscribers."""

import asyncio
import uuid
from typing import Any, Dict, Optional, Set

from core.logging import get_logger

logger = get_logger(__name__, component="broadcast")

NEW_TRADE_EVENT = "new-trade"


class Subscription:
    """A subscriber's bounded mailbox.

    Iterate it (`async for event in subscription`) or call `get()`. Events
    published while the mailbox is full are dropped for this subscriber only.
    """

    def __init__(self, maxsize: int):
        self.id = uuid.uuid4().hex
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._close_event = asyncio.Event()
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, event: Dict[str, Any]) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    def get_nowait(self) -> Optional[Dict[str, Any]]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    async def get(self) -> Optional[Dict[str, Any]]:
        """Next event; None once the subscription is closed and drained."""
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self._closed:
            return None

        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._close_event.wait())
        try:
            done, _ = await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (getter, closer):
                if not task.done():
                    task.cancel()
        if getter in done:
            return getter.result()
        return None

    def close(self) -> None:
        self._closed = True
        # Wakes a consumer blocked in get()
        self._close_event.set()

    def __aiter__(self):
        return self

    async def __anext__(self) -> Dict[str, Any]:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class BroadcastHub:
    """Best-effort, fire-and-forget delivery of new trades.

    `publish` never awaits a subscriber, so a slow or vanished subscriber cannot
    hold up the publisher or the other subscribers. Late subscribers get no
    replay; they read current state through the trade store.
    """

    def __init__(self, subscriber_queue_size: int = 1000):
        self._queue_size = subscriber_queue_size
        self._subscribers: Set[Subscription] = set()
        self._published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self._queue_size)
        self._subscribers.add(subscription)
        logger.info("Subscriber added", subscription_id=subscription.id,
                    total_subscribers=len(self._subscribers))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        if subscription in self._subscribers:
            self._subscribers.discard(subscription)
            logger.info("Subscriber removed", subscription_id=subscription.id,
                        dropped_events=subscription.dropped,
                        total_subscribers=len(self._subscribers))

    def publish(self, payload: Dict[str, Any], event_type: str = NEW_TRADE_EVENT) -> int:
        """Deliver to every current subscriber; returns how many accepted it."""
        event = {"type": event_type, "data": payload}
        delivered = 0
        # Copy: subscribers may come and go while we iterate
        for subscription in list(self._subscribers):
            if subscription.offer(event):
                delivered += 1
            elif not subscription.closed:
                logger.warning("Subscriber mailbox full; event dropped",
                               subscription_id=subscription.id,
                               dropped_events=subscription.dropped)
        self._published += 1
        return delivered

    def close_all(self) -> None:
        for subscription in list(self._subscribers):
            self.unsubscribe(subscription)

    def stats(self) -> Dict[str, int]:
        return {
            "subscribers": len(self._subscribers),
            "published": self._published,
        }
