"""Remittance order lifecycle.

- Settlement pricing (commission and delivery amount)
- Guarded status transitions with optimistic concurrency
- Append-only audit trail with replay verification
- SLA alert scheduler
- Realtime fan-out of status changes and alerts

Architecture: Domain-Driven Design (DDD) + Hexagonal Architecture
"""

__all__ = [
    "Actor",
    "ActorRole",
    "Alert",
    "AlertSeverity",
    "AuditEntry",
    "Order",
    "OrderStatus",
    "RecipientConfirmation",
    "RecipientDetails",
    "RemittanceType",
    "Settlement",
]

from .domain.enums import ActorRole, AlertSeverity, OrderStatus
from .domain.models import AuditEntry, Order, RemittanceType
from .domain.value_objects import (
    Actor,
    Alert,
    RecipientConfirmation,
    RecipientDetails,
    Settlement,
)
