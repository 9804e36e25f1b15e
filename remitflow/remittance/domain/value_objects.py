"""Domain value objects for the remittance lifecycle.

Value Objects in DDD:
- Immutable (frozen dataclasses)
- No identity (equality based on attributes)
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from .enums import ActorRole, AlertSeverity, OrderStatus


@dataclass(frozen=True)
class Actor:
    """An already-authenticated caller.

    Authentication happens upstream; the lifecycle only checks the role and,
    for senders, order ownership.
    """

    actor_id: str
    role: ActorRole

    def __post_init__(self) -> None:
        if not self.actor_id or not self.actor_id.strip():
            raise ValueError("actor_id must not be empty")

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @classmethod
    def sender(cls, actor_id: str) -> "Actor":
        return cls(actor_id=actor_id, role=ActorRole.SENDER)

    @classmethod
    def admin(cls, actor_id: str) -> "Actor":
        return cls(actor_id=actor_id, role=ActorRole.ADMIN)


@dataclass(frozen=True)
class RecipientDetails:
    """Who receives the money and where."""

    name: str
    phone: str
    id_number: str | None = None
    address: str | None = None
    province: str | None = None
    municipality: str | None = None
    notes: str | None = None

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.name or not self.name.strip():
            missing.append("recipient_name")
        if not self.phone or not self.phone.strip():
            missing.append("recipient_phone")
        return missing


@dataclass(frozen=True)
class RecipientConfirmation:
    """Identity of the person who physically received the delivery."""

    name: str
    id_number: str
    notes: str | None = None

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.name or not self.name.strip():
            missing.append("delivered_to_name")
        if not self.id_number or not self.id_number.strip():
            missing.append("delivered_to_id")
        return missing


@dataclass(frozen=True)
class Settlement:
    """Deterministic pricing of one remittance amount.

    ``commission`` is in the sent currency; ``amount_to_deliver`` is in the
    delivery currency.
    """

    amount_sent: Decimal
    exchange_rate: Decimal
    commission_percentage: Decimal
    commission_fixed: Decimal
    commission: Decimal
    amount_to_deliver: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "amount_sent": str(self.amount_sent),
            "exchange_rate": str(self.exchange_rate),
            "commission_percentage": str(self.commission_percentage),
            "commission_fixed": str(self.commission_fixed),
            "commission": str(self.commission),
            "amount_to_deliver": str(self.amount_to_deliver),
        }


@dataclass(frozen=True)
class Alert:
    """SLA alert for one order. Derived on each scheduler tick, never authoritative."""

    order_id: int
    order_number: str
    owner_id: str
    status: OrderStatus
    severity: AlertSeverity
    elapsed: timedelta
    threshold: timedelta
    generated_at: datetime

    @property
    def elapsed_hours(self) -> float:
        return round(self.elapsed.total_seconds() / 3600, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "owner_id": self.owner_id,
            "status": self.status.value,
            "severity": self.severity.value,
            "elapsed_hours": self.elapsed_hours,
            "threshold_hours": round(self.threshold.total_seconds() / 3600, 2),
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class OrderStats:
    """Aggregate figures over a set of orders."""

    total: int
    by_status: dict[str, int] = field(default_factory=dict)
    total_amount: Decimal = Decimal("0")
    completed_amount: Decimal = Decimal("0")
    avg_processing_hours: float = 0.0
