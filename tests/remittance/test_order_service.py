"""Tests for OrderLifecycleService."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from remitflow.exceptions import (
    AmountOutOfRangeError,
    ConfigInactiveError,
    DatabaseError,
    RecordNotFoundError,
    TransitionRejectedError,
    ValidationError,
)
from remitflow.remittance.application.services.settlement import compute_settlement
from remitflow.remittance.domain.enums import OrderStatus, ProofKind, RejectionReason
from remitflow.remittance.domain.events import OrderStatusChanged
from remitflow.remittance.domain.models import AuditEntry, Order
from remitflow.remittance.domain.value_objects import RecipientConfirmation, RecipientDetails

pytestmark = pytest.mark.integration


def _status_events(published):
    return [e for e in published if isinstance(e, OrderStatusChanged)]


class TestCreateOrder:
    def test_prices_and_persists_order(self, create_order, published, db_session):
        order = create_order("100")

        assert order.id is not None
        assert order.status == OrderStatus.CREATED
        assert order.version == 1
        assert order.commission_total == Decimal("2.50")
        assert order.amount_to_deliver == Decimal("31200.00")
        assert order.exchange_rate == Decimal("320")
        assert order.currency_sent == "USD"
        assert order.currency_delivered == "CUP"
        assert order.recipient_name == "Maria Pérez"

        entries = db_session.execute(select(AuditEntry)).scalars().all()
        assert len(entries) == 1
        assert entries[0].previous_status is None
        assert entries[0].new_status == OrderStatus.CREATED
        assert entries[0].actor_id == "user-1"

        events = _status_events(published)
        assert len(events) == 1
        assert events[0].new_status == OrderStatus.CREATED
        assert events[0].previous_status is None
        assert events[0].owner_id == "user-1"

    def test_order_numbers_are_sequential_per_year(self, create_order, clock):
        first = create_order()
        second = create_order()
        clock.advance(days=365)
        next_year = create_order()

        assert first.order_number == "REM-2025-0001"
        assert second.order_number == "REM-2025-0002"
        assert next_year.order_number == "REM-2026-0001"

    def test_amount_out_of_range(self, create_order, published, db_session):
        with pytest.raises(AmountOutOfRangeError) as exc_info:
            create_order("5")

        assert "10" in exc_info.value.message and "1000" in exc_info.value.message
        assert db_session.execute(select(Order)).first() is None
        assert published == []

    def test_amount_finer_than_minor_unit_is_rejected(self, create_order, published, db_session):
        with pytest.raises(ValidationError) as exc_info:
            create_order("100.005")

        assert exc_info.value.context["field"] == "amount_sent"
        assert db_session.execute(select(Order)).first() is None
        assert published == []

    def test_stored_order_reprices_to_stored_amounts(self, create_order, db_session):
        order = create_order("123.45")
        db_session.expire_all()

        stored = db_session.get(Order, order.id)
        repriced = compute_settlement(
            stored.amount_sent,
            stored.exchange_rate,
            stored.commission_percentage,
            stored.commission_fixed,
        )

        assert stored.amount_sent == Decimal("123.45")
        assert repriced.commission == stored.commission_total
        assert repriced.amount_to_deliver == stored.amount_to_deliver

    def test_inactive_type(self, create_order, sample_type, db_session):
        sample_type.is_active = False
        db_session.commit()

        with pytest.raises(ConfigInactiveError):
            create_order()

    def test_unknown_type(self, service, sender, recipient):
        with pytest.raises(RecordNotFoundError):
            service.create_order(sender.actor_id, 999, "100", recipient)

    def test_recipient_phone_required(self, service, sample_type, sender):
        with pytest.raises(ValidationError) as exc_info:
            service.create_order(
                sender.actor_id, sample_type.id, "100", RecipientDetails(name="Maria", phone=" ")
            )
        assert exc_info.value.context["field"] == "recipient_phone"

    def test_type_edits_do_not_change_existing_orders(self, create_order, sample_type, db_session):
        order = create_order("100")

        sample_type.exchange_rate = Decimal("400")
        sample_type.commission_percentage = Decimal("5")
        db_session.commit()
        db_session.refresh(order)

        assert order.exchange_rate == Decimal("320")
        assert order.commission_total == Decimal("2.50")
        assert order.amount_to_deliver == Decimal("31200.00")


class TestHappyPath:
    def test_full_lifecycle(
        self, service, create_order, sender, admin, confirmation, clock, published
    ):
        order = create_order()

        clock.advance(hours=1)
        order = service.upload_proof(
            order.id, OrderStatus.CREATED, sender, "proofs/p1.jpg", reference="TRX-991"
        )
        assert order.status == OrderStatus.PROOF_UPLOADED
        assert order.payment_proof_ref == "proofs/p1.jpg"
        assert order.payment_reference == "TRX-991"
        assert order.payment_proof_uploaded_at == clock.now

        clock.advance(hours=1)
        order = service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, admin)
        assert order.status == OrderStatus.VALIDATED
        assert order.validated_by == "admin-1"

        clock.advance(hours=1)
        order = service.start_processing(order.id, OrderStatus.VALIDATED, admin)
        assert order.processing_started_at == clock.now
        assert order.processing_started_by == "admin-1"

        clock.advance(days=1)
        order = service.confirm_delivery(
            order.id, OrderStatus.PROCESSING, admin, "proofs/d1.jpg", confirmation
        )
        assert order.status == OrderStatus.DELIVERED
        assert order.delivered_to_name == "Maria Pérez"
        assert order.delivered_to_id == "85010112345"

        clock.advance(hours=2)
        order = service.complete(order.id, OrderStatus.DELIVERED, admin)
        assert order.status == OrderStatus.COMPLETED
        assert order.completed_by == "admin-1"
        assert order.version == 6

        trail = service.list_audit_trail(order.id)
        assert [e.new_status for e in trail] == [
            OrderStatus.CREATED,
            OrderStatus.PROOF_UPLOADED,
            OrderStatus.VALIDATED,
            OrderStatus.PROCESSING,
            OrderStatus.DELIVERED,
            OrderStatus.COMPLETED,
        ]
        assert [e.sequence for e in trail] == [1, 2, 3, 4, 5, 6]
        assert len(_status_events(published)) == 6

    def test_timestamps_are_non_decreasing(self, order_in):
        order = order_in(OrderStatus.COMPLETED)

        stamps = [stamp for _, stamp in order.stage_timestamps()]
        assert all(stamp is not None for stamp in stamps)
        assert stamps == sorted(stamps)

    def test_clock_going_backwards_never_breaks_ordering(
        self, service, create_order, sender, admin, clock
    ):
        order = create_order()
        clock.advance(hours=5)
        order = service.upload_proof(order.id, OrderStatus.CREATED, sender, "proofs/p1.jpg")

        clock.advance(hours=-3)
        order = service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, admin)

        assert order.validated_at == order.payment_proof_uploaded_at
        trail = service.list_audit_trail(order.id)
        assert trail[-1].created_at >= trail[-2].created_at

    def test_reject_then_resubmit(self, service, order_in, sender, admin):
        order = order_in(OrderStatus.REJECTED)
        assert order.rejection_reason == "Unreadable receipt"
        assert order.rejected_by == "admin-1"

        order = service.upload_proof(order.id, OrderStatus.REJECTED, sender, "proofs/p2.jpg")
        assert order.status == OrderStatus.PROOF_UPLOADED
        assert order.payment_proof_ref == "proofs/p2.jpg"

        order = service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, admin)
        assert order.status == OrderStatus.VALIDATED

    def test_sender_cancel_records_reason(self, order_in):
        order = order_in(OrderStatus.CANCELLED)

        assert order.status == OrderStatus.CANCELLED
        assert order.cancelled_by == "user-1"
        assert order.cancellation_reason == "Changed my mind"
        assert order.cancelled_at is not None


class TestGuards:
    def _assert_rejected(self, call, reason):
        with pytest.raises(TransitionRejectedError) as exc_info:
            call()
        assert exc_info.value.reason == reason
        return exc_info.value

    def test_stale_expected_status(self, service, order_in, admin, published, db_session):
        order = order_in(OrderStatus.VALIDATED)
        before = len(published)

        self._assert_rejected(
            lambda: service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, admin),
            RejectionReason.STALE_STATE,
        )

        assert len(published) == before
        assert len(service.list_audit_trail(order.id)) == 3

    def test_cancel_completed_order(self, service, order_in, admin):
        order = order_in(OrderStatus.COMPLETED)

        self._assert_rejected(
            lambda: service.cancel(order.id, OrderStatus.COMPLETED, admin, "too late"),
            RejectionReason.INVALID_TARGET,
        )

    def test_cancel_delivered_order(self, service, order_in, admin):
        order = order_in(OrderStatus.DELIVERED)

        self._assert_rejected(
            lambda: service.cancel(order.id, OrderStatus.DELIVERED, admin, "too late"),
            RejectionReason.INVALID_TARGET,
        )

    def test_backwards_transition(self, service, order_in, admin):
        order = order_in(OrderStatus.DELIVERED)

        self._assert_rejected(
            lambda: service.start_processing(order.id, OrderStatus.DELIVERED, admin),
            RejectionReason.INVALID_TARGET,
        )

    def test_sender_cannot_validate(self, service, order_in, sender):
        order = order_in(OrderStatus.PROOF_UPLOADED)

        error = self._assert_rejected(
            lambda: service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, sender),
            RejectionReason.UNAUTHORIZED_ACTOR,
        )
        assert error.user_message == "You are not authorized for this action."

    def test_other_sender_cannot_touch_order(self, service, create_order, other_sender):
        order = create_order()

        self._assert_rejected(
            lambda: service.upload_proof(order.id, OrderStatus.CREATED, other_sender, "x.jpg"),
            RejectionReason.UNAUTHORIZED_ACTOR,
        )
        self._assert_rejected(
            lambda: service.cancel(order.id, OrderStatus.CREATED, other_sender, "not mine"),
            RejectionReason.UNAUTHORIZED_ACTOR,
        )

    def test_sender_cannot_cancel_processing_order(self, service, order_in, sender):
        order = order_in(OrderStatus.PROCESSING)

        self._assert_rejected(
            lambda: service.cancel(order.id, OrderStatus.PROCESSING, sender, "please stop"),
            RejectionReason.UNAUTHORIZED_ACTOR,
        )

    def test_admin_cancels_processing_order(self, service, order_in, admin):
        order = order_in(OrderStatus.PROCESSING)

        order = service.cancel(order.id, OrderStatus.PROCESSING, admin, "Recipient unreachable")
        assert order.status == OrderStatus.CANCELLED
        assert order.cancelled_by == "admin-1"

    def test_reject_requires_reason(self, service, order_in, admin):
        order = order_in(OrderStatus.PROOF_UPLOADED)

        error = self._assert_rejected(
            lambda: service.reject_payment(order.id, OrderStatus.PROOF_UPLOADED, admin, "  "),
            RejectionReason.MISSING_REQUIRED_FIELD,
        )
        assert "reason" in error.user_message

    def test_cancel_requires_reason(self, service, create_order, sender):
        order = create_order()

        self._assert_rejected(
            lambda: service.cancel(order.id, OrderStatus.CREATED, sender, ""),
            RejectionReason.MISSING_REQUIRED_FIELD,
        )

    def test_upload_requires_proof(self, service, create_order, sender):
        order = create_order()

        self._assert_rejected(
            lambda: service.upload_proof(order.id, OrderStatus.CREATED, sender, ""),
            RejectionReason.MISSING_REQUIRED_FIELD,
        )

    def test_delivery_requires_recipient_confirmation(self, service, order_in, admin):
        order = order_in(OrderStatus.PROCESSING)

        error = self._assert_rejected(
            lambda: service.confirm_delivery(
                order.id,
                OrderStatus.PROCESSING,
                admin,
                "proofs/d1.jpg",
                RecipientConfirmation(name="Maria Pérez", id_number=""),
            ),
            RejectionReason.MISSING_REQUIRED_FIELD,
        )
        assert "delivered_to_id" in error.message

    def test_authorization_checked_before_payload(self, service, order_in, sender):
        order = order_in(OrderStatus.PROOF_UPLOADED)

        self._assert_rejected(
            lambda: service.reject_payment(order.id, OrderStatus.PROOF_UPLOADED, sender, ""),
            RejectionReason.UNAUTHORIZED_ACTOR,
        )

    def test_unknown_order(self, service, admin):
        with pytest.raises(RecordNotFoundError):
            service.validate_payment(404, OrderStatus.PROOF_UPLOADED, admin)


class TestAtomicity:
    def test_failed_audit_write_leaves_order_untouched(
        self, service, order_in, admin, published, db_session
    ):
        order = order_in(OrderStatus.PROOF_UPLOADED)
        before = len(published)

        with patch.object(service.audit, "append", side_effect=SQLAlchemyError("disk I/O error")):
            with pytest.raises(DatabaseError):
                service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, admin)

        state = service.orders.read_state(order.id)
        assert state.status == OrderStatus.PROOF_UPLOADED
        assert state.version == 2
        assert len(service.list_audit_trail(order.id)) == 2
        assert len(published) == before

    def test_failing_listener_does_not_revert_transition(
        self, service, order_in, admin, event_bus
    ):
        order = order_in(OrderStatus.PROOF_UPLOADED)

        def broken_listener(event):
            raise RuntimeError("chat gateway down")

        event_bus.subscribe(OrderStatusChanged, broken_listener, priority=100)

        order = service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, admin)
        assert order.status == OrderStatus.VALIDATED
        assert service.orders.read_state(order.id).status == OrderStatus.VALIDATED


class TestQueries:
    def test_list_orders_by_owner_newest_first(
        self, service, create_order, other_sender, clock
    ):
        first = create_order()
        clock.advance(minutes=5)
        second = create_order()
        clock.advance(minutes=5)
        create_order(owner=other_sender)

        mine = service.list_orders(owner_id="user-1")
        assert [o.id for o in mine] == [second.id, first.id]
        assert len(service.list_orders()) == 3

    def test_list_orders_by_status(self, service, order_in):
        validated = order_in(OrderStatus.VALIDATED)
        order_in(OrderStatus.CREATED)

        result = service.list_orders(status=OrderStatus.VALIDATED)
        assert [o.id for o in result] == [validated.id]

    def test_get_unknown_order(self, service):
        with pytest.raises(RecordNotFoundError):
            service.get_order(12345)

    def test_resolve_proof_urls(self, service, order_in):
        order = order_in(OrderStatus.DELIVERED)

        assert (
            service.resolve_proof_url(order.id, ProofKind.PAYMENT)
            == "https://storage.test/proofs/proofs/payment-1.jpg"
        )
        assert (
            service.resolve_proof_url(order.id, ProofKind.DELIVERY)
            == "https://storage.test/proofs/proofs/delivery-1.jpg"
        )

    def test_resolve_missing_proof(self, service, create_order):
        order = create_order()
        assert service.resolve_proof_url(order.id, ProofKind.PAYMENT) is None
