"""
In-process change feed — push notifications for row-store writes.

Repositories publish a ``ChangeEvent`` after every committed insert or
update; UI surfaces subscribe by table and an equality filter. Publishing
never blocks a writer: a subscriber that falls behind loses events.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    op: str  # INSERT | UPDATE
    row: dict[str, Any] = field(default_factory=dict)


class Subscription:
    """Async iterator over events matching one table + filter."""

    def __init__(self, feed: ChangeFeed, table: str, filters: dict[str, Any], maxsize: int) -> None:
        self._feed = feed
        self.table = table
        self.filters = filters
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return all(event.row.get(k) == v for k, v in self.filters.items())

    def offer(self, event: ChangeEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug("Dropped %s event for slow subscriber on %s", event.op, self.table)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.unsubscribe(self)
        # Make room for the sentinel so a blocked reader always wakes up.
        while self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class ChangeFeed:
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, table: str, **filters: Any) -> Subscription:
        sub = Subscription(self, table, filters, self._queue_size)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def publish(self, event: ChangeEvent) -> int:
        """Fan *event* out to matching subscribers; returns how many got it."""
        delivered = 0
        for sub in list(self._subscriptions):
            if sub.matches(event):
                sub.offer(event)
                delivered += 1
        return delivered


change_feed = ChangeFeed()
