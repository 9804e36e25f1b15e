"""Repository implementations for remittance entities.

Provides data access abstraction following the Repository pattern. The order
repository exposes the single conditional write that serializes transitions
on the same order.
"""

from datetime import datetime
from typing import Any, NamedTuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from ..domain.enums import OrderStatus
from ..domain.models import AuditEntry, Order, RemittanceType


class OrderState(NamedTuple):
    """Persisted guard state of one order."""

    status: OrderStatus
    version: int
    owner_id: str
    last_transition_at: datetime


class RemittanceTypeRepository:
    """Repository for RemittanceType entities."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, remittance_type: RemittanceType) -> RemittanceType:
        self.session.add(remittance_type)
        self.session.flush()
        return remittance_type

    def get_by_id(self, type_id: int) -> RemittanceType | None:
        return self.session.get(RemittanceType, type_id)

    def find_all(self, active_only: bool = False) -> list[RemittanceType]:
        """Find types ordered for display."""
        stmt = select(RemittanceType).order_by(RemittanceType.display_order, RemittanceType.id)
        if active_only:
            stmt = stmt.where(RemittanceType.is_active.is_(True))
        return list(self.session.execute(stmt).scalars())


class OrderRepository:
    """Repository for Order entities."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, order: Order) -> Order:
        self.session.add(order)
        self.session.flush()
        return order

    def get_by_id(self, order_id: int) -> Order | None:
        return self.session.get(Order, order_id)

    def get_by_number(self, order_number: str) -> Order | None:
        stmt = select(Order).where(Order.order_number == order_number)
        return self.session.execute(stmt).scalar_one_or_none()

    def read_state(self, order_id: int) -> OrderState | None:
        """Read what the transition guards need straight from the store.

        Bypasses the identity map so a caller never decides on a cached status.
        """
        stmt = select(
            Order.status, Order.version, Order.owner_id, Order.last_transition_at
        ).where(Order.id == order_id)
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            return None
        return OrderState(row.status, row.version, row.owner_id, row.last_transition_at)

    def compare_and_set_status(
        self,
        order_id: int,
        expected: OrderStatus,
        expected_version: int,
        new_status: OrderStatus,
        changes: dict[str, Any],
    ) -> bool:
        """Apply a status change only if the persisted row is still the one observed.

        Matching on ``version`` as well as ``status`` also catches an order that
        left and re-entered ``expected`` in between (rejected, then resubmitted).

        Returns:
            True if exactly one row was updated, False on a stale status
        """
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.status == expected,
                Order.version == expected_version,
            )
            .values(status=new_status, version=Order.version + 1, **changes)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def find(
        self,
        *,
        owner_id: str | None = None,
        status: OrderStatus | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[Order]:
        """Find orders, newest first."""
        stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if owner_id is not None:
            stmt = stmt.where(Order.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        if created_from is not None:
            stmt = stmt.where(Order.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(Order.created_at <= created_to)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def find_in_statuses(self, statuses: list[OrderStatus]) -> list[Order]:
        """Find orders in any of the given statuses, with their remittance type loaded."""
        stmt = (
            select(Order)
            .where(Order.status.in_(statuses))
            .options(selectinload(Order.remittance_type))
            .order_by(Order.id)
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars())

    def find_all_ids(self) -> list[int]:
        return list(self.session.execute(select(Order.id).order_by(Order.id)).scalars())

    def highest_sequence_for_prefix(self, prefix: str) -> int:
        """Highest sequence already used for an order-number prefix like 'REM-2025-'."""
        stmt = select(Order.order_number).where(Order.order_number.like(f"{prefix}%"))
        highest = 0
        for number in self.session.execute(stmt).scalars():
            suffix = number[len(prefix) :]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest


class AuditEntryRepository:
    """Repository for AuditEntry rows. Append and read only."""

    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: AuditEntry) -> AuditEntry:
        self.session.add(entry)
        self.session.flush()
        return entry

    def find_by_order(self, order_id: int) -> list[AuditEntry]:
        """Entries of one order in transition order."""
        stmt = (
            select(AuditEntry)
            .where(AuditEntry.order_id == order_id)
            .order_by(AuditEntry.sequence, AuditEntry.created_at, AuditEntry.id)
        )
        return list(self.session.execute(stmt).scalars())

    def count_by_order(self, order_id: int) -> int:
        stmt = select(func.count(AuditEntry.id)).where(AuditEntry.order_id == order_id)
        return int(self.session.execute(stmt).scalar_one())
