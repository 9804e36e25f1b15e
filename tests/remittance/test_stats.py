"""Tests for order statistics."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from remitflow.remittance.application.services.stats import compute_stats, order_stats
from remitflow.remittance.domain.enums import OrderStatus
from remitflow.remittance.domain.models import Order

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


def _order(status, amount, completed_after=None):
    order = Order(status=status, amount_sent=Decimal(amount), created_at=T0)
    if completed_after is not None:
        order.completed_at = T0 + completed_after
    return order


class TestComputeStats:
    def test_empty(self):
        stats = compute_stats([])

        assert stats.total == 0
        assert stats.total_amount == Decimal("0")
        assert stats.avg_processing_hours == 0.0
        assert set(stats.by_status) == {status.value for status in OrderStatus}

    def test_aggregates(self):
        stats = compute_stats(
            [
                _order(OrderStatus.COMPLETED, "100", timedelta(hours=10)),
                _order(OrderStatus.COMPLETED, "50", timedelta(hours=20)),
                _order(OrderStatus.PROCESSING, "30"),
                _order(OrderStatus.CANCELLED, "500"),
            ]
        )

        assert stats.total == 4
        assert stats.by_status["completed"] == 2
        assert stats.by_status["cancelled"] == 1
        assert stats.by_status["created"] == 0
        assert stats.total_amount == Decimal("180")
        assert stats.completed_amount == Decimal("150")
        assert stats.avg_processing_hours == 15.0


@pytest.mark.integration
class TestOrderStats:
    def test_filters_by_owner_and_period(self, db_session, create_order, other_sender, clock):
        create_order("100")
        clock.advance(days=2)
        create_order("200")
        create_order("300", owner=other_sender)

        mine = order_stats(db_session, owner_id="user-1")
        assert mine.total == 2
        assert mine.total_amount == Decimal("300")

        recent = order_stats(db_session, start=clock.now - timedelta(hours=1))
        assert recent.total == 2
        assert recent.total_amount == Decimal("500")

        early = order_stats(db_session, end=clock.now - timedelta(days=1))
        assert early.total == 1
        assert early.by_status["created"] == 1
