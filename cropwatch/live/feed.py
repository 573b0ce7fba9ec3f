"""In-process change feed for device-table inserts and updates.

Writers publish a :class:`ChangeEvent` after committing; each
:class:`Subscription` owns a queue drained by one consumer task. Events
reach a subscription in publish order, but every handler call runs as
its own task, so handlers for successive events may interleave at their
await points.
"""

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

logger = logging.getLogger(__name__)

ChangeType = Literal["INSERT", "UPDATE"]
Handler = Callable[["ChangeEvent"], Awaitable[Any]]

DEVICES_TABLE = "cw_devices"


@dataclass(frozen=True)
class ChangeEvent:
    """A row change: the event type, the table, and the new row's raw fields."""

    type: ChangeType
    record: dict[str, Any]
    table: str = DEVICES_TABLE


@dataclass(eq=False)
class Subscription:
    """A live subscription; call it (or ``unsubscribe()``) to stop receiving events."""

    feed: "ChangeFeed"
    table: str
    handler: Handler
    id: int
    _queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    _consumer: asyncio.Task | None = None
    _inflight: set[asyncio.Task] = field(default_factory=set)

    @property
    def active(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self) -> None:
        self._consumer = asyncio.get_running_loop().create_task(
            self._consume(), name=f"change-feed-{self.table}-{self.id}"
        )

    def deliver(self, event: ChangeEvent) -> None:
        self._queue.put_nowait(event)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            task = asyncio.create_task(self.handler(event))
            self._inflight.add(task)
            task.add_done_callback(self._handler_done)

    def _handler_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        self._queue.task_done()
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Change handler failed on {self.table}", exc_info=exc)

    async def drain(self) -> None:
        """Wait until every delivered event has been fully handled."""
        await self._queue.join()

    def unsubscribe(self) -> None:
        self.feed._remove(self)
        if self._consumer is not None:
            self._consumer.cancel()
        for task in list(self._inflight):
            task.cancel()

    def __call__(self) -> None:
        self.unsubscribe()


class ChangeFeed:
    """Fan-out of change events to per-table subscribers."""

    def __init__(self) -> None:
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: Handler, table: str = DEVICES_TABLE) -> Subscription:
        """Start delivering ``table`` events to ``handler``. Needs a running loop."""
        subscription = Subscription(feed=self, table=table, handler=handler, id=next(self._ids))
        subscription.start()
        self._subscriptions[subscription.id] = subscription
        logger.info(f"Subscribed to {table} changes (subscription {subscription.id})")
        return subscription

    def publish(self, event: ChangeEvent) -> int:
        """Queue ``event`` for every subscriber of its table. Returns the count."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if subscription.table == event.table:
                subscription.deliver(event)
                delivered += 1
        return delivered

    def _remove(self, subscription: Subscription) -> None:
        if self._subscriptions.pop(subscription.id, None) is not None:
            logger.info(
                f"Unsubscribed from {subscription.table} changes (subscription {subscription.id})"
            )
