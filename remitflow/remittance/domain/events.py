"""Domain events for the remittance lifecycle.

Every applied transition publishes exactly one ``OrderStatusChanged`` after the
status write and its audit entry are committed. The alert scheduler publishes
``AlertRaised``. Both carry the owner so the realtime notifier can route them.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from ...core.events.base import BaseEvent
from .enums import AlertSeverity, EventKind, OrderStatus


@dataclass(frozen=True)
class OrderEvent(BaseEvent):
    """Base class of events routed to realtime subscribers."""

    order_id: int
    order_number: str
    owner_id: str

    @property
    def kind(self) -> EventKind:
        raise NotImplementedError

    @property
    def payload(self) -> dict:
        raise NotImplementedError


@dataclass(frozen=True)
class OrderStatusChanged(OrderEvent):
    """Event fired after a transition (including creation) is committed."""

    previous_status: OrderStatus | None
    new_status: OrderStatus
    actor_id: str
    version: int
    reason: str | None = None
    amount_sent: Decimal | None = None
    currency_sent: str | None = None

    @property
    def kind(self) -> EventKind:
        return EventKind.STATUS_CHANGED

    @property
    def payload(self) -> dict:
        return {
            "order_number": self.order_number,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "new_status": self.new_status.value,
            "actor_id": self.actor_id,
            "version": self.version,
            "reason": self.reason,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class AlertRaised(OrderEvent):
    """Event fired when an order crosses a warning or breach threshold."""

    status: OrderStatus
    severity: AlertSeverity
    elapsed: timedelta
    threshold: timedelta

    @property
    def kind(self) -> EventKind:
        return EventKind.ALERT_RAISED

    @property
    def payload(self) -> dict:
        return {
            "order_number": self.order_number,
            "status": self.status.value,
            "severity": self.severity.value,
            "elapsed_hours": round(self.elapsed.total_seconds() / 3600, 2),
            "threshold_hours": round(self.threshold.total_seconds() / 3600, 2),
            "occurred_at": self.occurred_at.isoformat(),
        }
