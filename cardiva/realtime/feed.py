"""In-process pub/sub of table change events.

Producers (the Postgres listener, or tests) publish ``ChangeEvent``s; each
subscriber receives the events for its tables, optionally restricted to rows
owned by one user, in the order they were published.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from cardiva.realtime.events import ChangeEvent

logger = logging.getLogger(__name__)


class Subscription:
    def __init__(
        self,
        feed: ChangeFeed,
        tables: Iterable[str],
        user_id: str | None = None,
        maxsize: int = 1000,
    ):
        self._feed = feed
        self.tables = frozenset(tables)
        self.user_id = str(user_id) if user_id is not None else None
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def matches(self, event: ChangeEvent) -> bool:
        if event.table not in self.tables:
            return False
        if self.user_id is not None and event.user_id != self.user_id:
            return False
        return True

    def offer(self, event: ChangeEvent) -> bool:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Change subscription full, dropping {event.type.value} on {event.table}")
            return False
        return True

    async def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next event, or None if ``timeout`` expires first."""
        if timeout is None:
            return await self.queue.get()
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self.queue.get()


class ChangeFeed:
    def __init__(self):
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        tables: Iterable[str],
        user_id: str | None = None,
        maxsize: int = 1000,
    ) -> Subscription:
        subscription = Subscription(self, tables, user_id=user_id, maxsize=maxsize)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every matching subscriber.

        Returns:
            int: Number of subscribers that received the event
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event) and subscription.offer(event):
                delivered += 1
        return delivered


# Process-wide feed
_feed: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    global _feed
    if _feed is None:
        _feed = ChangeFeed()
    return _feed
