"""Interfaces of the external collaborators the lifecycle consumes.

- Proof storage: the core stores only opaque references and asks a resolver
  for a retrievable URL.
- Notification dispatch: the core emits structured events; the dispatcher owns
  templating and channel delivery (chat messages, email, ...).
"""

from __future__ import annotations

from collections import deque
from typing import Protocol

from ...core.events.base import GlobalEventBus, get_global_event_bus
from ...exceptions import NotificationDeliveryError
from ...utils.logging import get_logger
from ..domain.events import OrderEvent

logger = get_logger(__name__)

RECENT_FAILURES = 100


class ProofStorageResolver(Protocol):
    """Turns a stored proof reference into a retrievable URL."""

    def resolve(self, reference: str) -> str: ...


class NotificationDispatcher(Protocol):
    """Delivers an order event to people through some channel.

    Implementations raise ``NotificationDeliveryError`` when delivery fails.
    """

    def dispatch(self, event: OrderEvent) -> None: ...


class StaticURLResolver:
    """Resolve references relative to a fixed storage base URL."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def resolve(self, reference: str) -> str:
        if reference.startswith(("http://", "https://")):
            return reference
        return f"{self.base_url}/{reference.lstrip('/')}"


class LoggingDispatcher:
    """Dispatcher that only records what would have been sent."""

    def dispatch(self, event: OrderEvent) -> None:
        logger.info(
            "notification_dispatched",
            channel="log",
            order_id=event.order_id,
            order_number=event.order_number,
            kind=event.kind.value,
        )


class NotificationListener:
    """Bus listener that hands order events to a dispatcher.

    Delivery failures are downgraded to warnings and counted; they never reach
    the publisher and never affect the order's committed state. Only the most
    recent ``max_failures`` errors are kept.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        channel: str = "default",
        max_failures: int = RECENT_FAILURES,
    ):
        self.dispatcher = dispatcher
        self.channel = channel
        self.failures: deque[NotificationDeliveryError] = deque(maxlen=max_failures)
        self.failure_count = 0

    def __call__(self, event: OrderEvent) -> None:
        try:
            self.dispatcher.dispatch(event)
        except NotificationDeliveryError as e:
            self._record_failure(e, event)
        except Exception as e:
            self._record_failure(
                NotificationDeliveryError(
                    f"Notification delivery failed for order {event.order_id}",
                    channel=self.channel,
                    order_id=event.order_id,
                    original_error=e,
                ),
                event,
            )

    def _record_failure(self, error: NotificationDeliveryError, event: OrderEvent) -> None:
        self.failures.append(error)
        self.failure_count += 1
        logger.warning(
            "notification_delivery_failed",
            channel=self.channel,
            order_id=event.order_id,
            kind=event.kind.value,
            failure_count=self.failure_count,
            error=str(error),
        )

    def attach(self, event_bus: GlobalEventBus | None = None) -> None:
        bus = event_bus or get_global_event_bus()
        if not bus.is_subscribed(OrderEvent, self):
            bus.subscribe(OrderEvent, self, priority=10)
