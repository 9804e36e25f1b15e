"""Realtime fan-out of order events to connected viewers.

Subscribers register by order owner (sender view) or for all orders
(administrator dashboard). Delivery is best-effort and at-most-once for the
lifetime of a subscription: nothing is replayed, a reconnecting viewer
re-reads current state and subscribes again.

Example:
    >>> notifier = RealtimeNotifier(bus)
    >>> notifier.attach()
    >>> with notifier.subscribe(SubscriptionFilter(owner_id="user-1")) as sub:
    ...     for event in sub:
    ...         render(event)
"""

from __future__ import annotations

import asyncio
import queue
import threading
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass, field
from typing import Any

from ...core.events.base import GlobalEventBus, get_global_event_bus
from ...utils.config import get_settings
from ...utils.logging import get_logger
from ..domain.enums import EventKind
from ..domain.events import OrderEvent

logger = get_logger(__name__)

_CLOSED = object()


@dataclass(frozen=True)
class RealtimeEvent:
    """What a subscriber receives: ``(order_id, kind, payload)`` plus routing owner."""

    order_id: int
    kind: EventKind
    payload: dict[str, Any]
    owner_id: str

    @classmethod
    def from_domain(cls, event: OrderEvent) -> RealtimeEvent:
        return cls(
            order_id=event.order_id,
            kind=event.kind,
            payload=event.payload,
            owner_id=event.owner_id,
        )


@dataclass(frozen=True)
class SubscriptionFilter:
    """Which events a subscriber wants.

    ``owner_id=None`` means all orders (administrator view).
    """

    owner_id: str | None = None
    order_id: int | None = None
    kinds: frozenset[EventKind] = field(default_factory=lambda: frozenset(EventKind))

    def matches(self, event: RealtimeEvent) -> bool:
        if self.owner_id is not None and event.owner_id != self.owner_id:
            return False
        if self.order_id is not None and event.order_id != self.order_id:
            return False
        return event.kind in self.kinds


class Subscription:
    """A lazy, unbounded stream of events; ends only on ``unsubscribe``."""

    def __init__(self, notifier: RealtimeNotifier, filter: SubscriptionFilter, maxsize: int):
        self.filter = filter
        self._notifier = notifier
        # One spare slot for the end-of-stream marker
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: RealtimeEvent) -> bool:
        """Enqueue an event without blocking the publisher.

        Returns:
            False if the subscription is closed or its buffer is full (event dropped)
        """
        with self._lock:
            if self.closed:
                return False
            if self._queue.qsize() < self._maxsize:
                self._queue.put_nowait(event)
                return True
            self.dropped += 1
            dropped = self.dropped

        logger.warning(
            "realtime_event_dropped",
            order_id=event.order_id,
            kind=event.kind.value,
            dropped=dropped,
        )
        return False

    def _take(self, block: bool = True, timeout: float | None = None) -> Any:
        item = self._queue.get(block=block, timeout=timeout)
        if item is _CLOSED:
            # The marker stays queued so every later read also sees the end
            self._queue.put_nowait(_CLOSED)
        return item

    def get(self, timeout: float | None = None) -> RealtimeEvent | None:
        """Next event, or None on timeout or after unsubscribe."""
        try:
            item = self._take(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def drain(self) -> list[RealtimeEvent]:
        """All currently buffered events, without waiting."""
        events = []
        while True:
            try:
                item = self._take(block=False)
            except queue.Empty:
                return events
            if item is _CLOSED:
                return events
            events.append(item)

    def unsubscribe(self) -> None:
        with self._lock:
            if self.closed:
                return
            self._closed.set()
            # Wake any consumer blocked in get()
            self._queue.put_nowait(_CLOSED)
        self._notifier._remove(self)

    def __iter__(self) -> Iterator[RealtimeEvent]:
        while True:
            item = self._take()
            if item is _CLOSED:
                return
            yield item

    async def __aiter__(self) -> AsyncIterator[RealtimeEvent]:
        while True:
            item = await asyncio.to_thread(self._take)
            if item is _CLOSED:
                return
            yield item

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.unsubscribe()


class RealtimeNotifier:
    """Routes order events from the event bus to matching subscriptions."""

    def __init__(self, event_bus: GlobalEventBus | None = None, queue_size: int | None = None):
        self.event_bus = event_bus or get_global_event_bus()
        self.queue_size = queue_size or get_settings().subscriber_queue_size
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def attach(self) -> None:
        """Start listening to order events on the bus (idempotent)."""
        if not self.event_bus.is_subscribed(OrderEvent, self.handle_event):
            self.event_bus.subscribe(OrderEvent, self.handle_event, priority=50)

    def detach(self) -> None:
        self.event_bus.unsubscribe(OrderEvent, self.handle_event)

    def subscribe(self, filter: SubscriptionFilter | None = None) -> Subscription:
        """Open a new stream. Events published before this call are never delivered."""
        subscription = Subscription(self, filter or SubscriptionFilter(), self.queue_size)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(
            "realtime_subscribed",
            owner_id=subscription.filter.owner_id,
            order_id=subscription.filter.order_id,
        )
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def handle_event(self, event: OrderEvent) -> None:
        self.publish(RealtimeEvent.from_domain(event))

    def publish(self, event: RealtimeEvent) -> int:
        """Fan an event out to every matching subscription.

        Returns:
            Number of subscriptions the event was delivered to
        """
        with self._lock:
            targets = [s for s in self._subscriptions if s.filter.matches(event)]

        delivered = sum(1 for subscription in targets if subscription.deliver(event))
        logger.debug(
            "realtime_event_fanned_out",
            order_id=event.order_id,
            kind=event.kind.value,
            delivered=delivered,
        )
        return delivered
