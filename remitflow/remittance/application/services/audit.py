"""Append-only audit trail of order status transitions.

Replay property: folding an order's entries in sequence, starting from its
creation entry, must land on the order's persisted status. Any divergence is
a data-integrity fault surfaced by ``verify`` / ``verify_all``.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from ....exceptions import IntegrityCheckFailedError, RecordNotFoundError
from ....utils.logging import get_logger
from ...domain.enums import OrderStatus
from ...domain.models import AuditEntry, Order
from ...domain.state_machine import is_legal_edge
from ...domain.value_objects import Actor
from ...infrastructure.repository import AuditEntryRepository, OrderRepository

logger = get_logger(__name__)


def replay(order_id: int, entries: list[AuditEntry]) -> OrderStatus:
    """Fold a sequence of transitions into the status it leads to.

    Raises:
        IntegrityCheckFailedError: If the sequence is empty, does not start with
            the creation entry, breaks continuity or contains an illegal edge
    """
    state: OrderStatus | None = None
    last_at: datetime | None = None

    for entry in entries:
        problem = None
        if entry.previous_status != state:
            expected = state.value if state else None
            previous = entry.previous_status.value if entry.previous_status else None
            problem = f"entry {entry.sequence} starts from {previous}, trail is at {expected}"
        elif state is None and entry.new_status != OrderStatus.CREATED:
            problem = f"first entry lands on {entry.new_status.value}, not created"
        elif state is not None and not is_legal_edge(state, entry.new_status):
            problem = f"illegal edge {state.value} -> {entry.new_status.value}"
        elif last_at is not None and entry.created_at < last_at:
            problem = f"entry {entry.sequence} is timestamped before its predecessor"

        if problem:
            raise IntegrityCheckFailedError(
                f"Audit trail of order {order_id} is inconsistent: {problem}",
                mismatches=[{"order_id": order_id, "problem": problem}],
            )

        state = entry.new_status
        last_at = entry.created_at

    if state is None:
        problem = "no audit entries"
        raise IntegrityCheckFailedError(
            f"Audit trail of order {order_id} is inconsistent: {problem}",
            mismatches=[{"order_id": order_id, "problem": problem}],
        )

    return state


class AuditTrail:
    """Writes and reads audit entries; no update or delete is exposed."""

    def __init__(self, session: Session):
        self.session = session
        self.entries = AuditEntryRepository(session)
        self.orders = OrderRepository(session)

    def append(
        self,
        *,
        order_id: int,
        sequence: int,
        previous_status: OrderStatus | None,
        new_status: OrderStatus,
        actor: Actor,
        at: datetime,
        reason: str | None = None,
        notes: str | None = None,
    ) -> AuditEntry:
        """Append one entry inside the caller's transaction."""
        entry = AuditEntry(
            order_id=order_id,
            sequence=sequence,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            reason=reason,
            notes=notes,
            created_at=at,
        )
        return self.entries.append(entry)

    def list_entries(self, order_id: int) -> list[AuditEntry]:
        """Entries of one order, oldest first."""
        if self.orders.get_by_id(order_id) is None:
            raise RecordNotFoundError(
                f"Order {order_id} not found", entity_type="Order", entity_id=order_id
            )
        return self.entries.find_by_order(order_id)

    def verify(self, order_id: int) -> OrderStatus:
        """Replay one order's trail and compare it with the persisted status.

        Returns:
            The verified status

        Raises:
            IntegrityCheckFailedError: On any divergence
        """
        order = self.orders.get_by_id(order_id)
        if order is None:
            raise RecordNotFoundError(
                f"Order {order_id} not found", entity_type="Order", entity_id=order_id
            )
        return self._verify_order(order)

    def _verify_order(self, order: Order) -> OrderStatus:
        self.session.refresh(order)
        replayed = replay(order.id, self.entries.find_by_order(order.id))
        if replayed != order.status:
            problem = f"replay lands on {replayed.value}, persisted status is {order.status.value}"
            raise IntegrityCheckFailedError(
                f"Audit trail of order {order.id} is inconsistent: {problem}",
                mismatches=[{"order_id": order.id, "problem": problem}],
            )
        return replayed

    def verify_all(self) -> int:
        """Maintenance check over every order.

        Returns:
            Number of orders verified

        Raises:
            IntegrityCheckFailedError: Listing every diverging order
        """
        mismatches: list[dict[str, Any]] = []
        order_ids = self.orders.find_all_ids()

        for order_id in order_ids:
            order = self.orders.get_by_id(order_id)
            try:
                self._verify_order(order)
            except IntegrityCheckFailedError as e:
                mismatches.extend(e.mismatches)

        if mismatches:
            logger.error(
                "audit_integrity_check_failed",
                orders_checked=len(order_ids),
                mismatch_count=len(mismatches),
                order_ids=[m["order_id"] for m in mismatches],
            )
            raise IntegrityCheckFailedError(
                f"{len(mismatches)} order(s) diverge from their audit trail",
                mismatches=mismatches,
            )

        logger.info("audit_integrity_check_passed", orders_checked=len(order_ids))
        return len(order_ids)
