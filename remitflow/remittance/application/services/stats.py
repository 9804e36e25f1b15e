"""Order statistics for the administrator dashboard."""

from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from ...domain.enums import OrderStatus
from ...domain.models import Order
from ...domain.value_objects import OrderStats
from ...infrastructure.repository import OrderRepository


def compute_stats(orders: Iterable[Order]) -> OrderStats:
    """Aggregate counts and amounts over a set of orders.

    ``avg_processing_hours`` measures creation to completion over completed
    orders only.
    """
    by_status: Counter[str] = Counter()
    total_amount = Decimal("0")
    completed_amount = Decimal("0")
    completion_hours: list[float] = []

    for order in orders:
        by_status[order.status.value] += 1
        if order.status == OrderStatus.CANCELLED:
            continue
        total_amount += order.amount_sent
        if order.status == OrderStatus.COMPLETED:
            completed_amount += order.amount_sent
            if order.completed_at is not None:
                elapsed = order.completed_at - order.created_at
                completion_hours.append(elapsed.total_seconds() / 3600)

    avg_hours = round(sum(completion_hours) / len(completion_hours), 2) if completion_hours else 0.0

    return OrderStats(
        total=sum(by_status.values()),
        by_status={status.value: by_status.get(status.value, 0) for status in OrderStatus},
        total_amount=total_amount,
        completed_amount=completed_amount,
        avg_processing_hours=avg_hours,
    )


def order_stats(
    session: Session,
    *,
    owner_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> OrderStats:
    """Statistics over orders created within ``[start, end]``."""
    orders = OrderRepository(session).find(owner_id=owner_id, created_from=start, created_to=end)
    return compute_stats(orders)
