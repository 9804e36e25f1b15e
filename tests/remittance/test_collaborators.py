"""Tests for proof resolution and notification dispatch."""

from unittest.mock import Mock

import pytest

from remitflow.exceptions import NotificationDeliveryError
from remitflow.remittance.application.collaborators import (
    LoggingDispatcher,
    NotificationListener,
    StaticURLResolver,
)
from remitflow.remittance.application.services.order_service import OrderLifecycleService
from remitflow.remittance.domain.enums import OrderStatus, ProofKind
from remitflow.remittance.domain.events import OrderEvent, OrderStatusChanged


class FailingDispatcher:
    """Dispatcher whose channel is always down."""

    def __init__(self, error: Exception):
        self.error = error
        self.attempts = 0

    def dispatch(self, event):
        self.attempts += 1
        raise self.error


class TestStaticURLResolver:
    @pytest.mark.parametrize(
        "base_url,reference,expected",
        [
            ("https://cdn.test/proofs", "2025/p1.jpg", "https://cdn.test/proofs/2025/p1.jpg"),
            ("https://cdn.test/proofs/", "/p1.jpg", "https://cdn.test/proofs/p1.jpg"),
            ("https://cdn.test/proofs", "https://other.test/p1.jpg", "https://other.test/p1.jpg"),
        ],
    )
    def test_resolve(self, base_url, reference, expected):
        assert StaticURLResolver(base_url).resolve(reference) == expected

    @pytest.mark.integration
    def test_service_uses_injected_resolver(
        self, db_session, event_bus, settings, clock, sample_type, sender, recipient
    ):
        resolver = Mock()
        resolver.resolve.return_value = "https://signed.test/p1.jpg?sig=abc"
        service = OrderLifecycleService(
            db_session, event_bus=event_bus, settings=settings, clock=clock, proof_resolver=resolver
        )
        order = service.create_order(sender.actor_id, sample_type.id, "50", recipient)
        service.upload_proof(order.id, OrderStatus.CREATED, sender, "p1.jpg")

        url = service.resolve_proof_url(order.id, ProofKind.PAYMENT)

        assert url == "https://signed.test/p1.jpg?sig=abc"
        resolver.resolve.assert_called_once_with("p1.jpg")


class TestNotificationListener:
    @pytest.fixture
    def status_event(self):
        return OrderStatusChanged(
            order_id=1,
            order_number="REM-2025-0001",
            owner_id="user-1",
            previous_status=OrderStatus.PROOF_UPLOADED,
            new_status=OrderStatus.VALIDATED,
            actor_id="admin-1",
            version=3,
        )

    def test_forwards_events_to_dispatcher(self, status_event):
        dispatcher = Mock()
        listener = NotificationListener(dispatcher, channel="chat")

        listener(status_event)

        dispatcher.dispatch.assert_called_once_with(status_event)
        assert not listener.failures
        assert listener.failure_count == 0

    def test_delivery_error_is_recorded(self, status_event):
        error = NotificationDeliveryError("chat bot blocked", channel="chat", order_id=1)
        listener = NotificationListener(FailingDispatcher(error), channel="chat")

        listener(status_event)

        assert list(listener.failures) == [error]
        assert listener.failure_count == 1

    def test_only_recent_failures_are_kept(self, status_event):
        errors = [NotificationDeliveryError(f"attempt {n}") for n in range(5)]
        dispatcher = Mock()
        dispatcher.dispatch.side_effect = errors
        listener = NotificationListener(dispatcher, channel="chat", max_failures=2)

        for _ in errors:
            listener(status_event)

        assert list(listener.failures) == errors[-2:]
        assert listener.failure_count == 5

    def test_unexpected_error_is_wrapped(self, status_event):
        listener = NotificationListener(FailingDispatcher(TimeoutError("smtp timeout")), "email")

        listener(status_event)

        failure = listener.failures[0]
        assert isinstance(failure, NotificationDeliveryError)
        assert failure.context == {"channel": "email", "order_id": 1}
        assert isinstance(failure.original_error, TimeoutError)

    def test_logging_dispatcher_accepts_events(self, status_event):
        LoggingDispatcher().dispatch(status_event)

    def test_attach_is_idempotent(self, event_bus):
        listener = NotificationListener(LoggingDispatcher())
        listener.attach(event_bus)
        listener.attach(event_bus)

        assert len(event_bus._handlers[OrderEvent]) == 1

    @pytest.mark.integration
    def test_failed_delivery_never_reverts_order(self, service, order_in, admin, event_bus):
        dispatcher = FailingDispatcher(NotificationDeliveryError("gateway down"))
        listener = NotificationListener(dispatcher, channel="chat")
        listener.attach(event_bus)

        order = order_in(OrderStatus.PROOF_UPLOADED)
        order = service.validate_payment(order.id, OrderStatus.PROOF_UPLOADED, admin)

        assert order.status == OrderStatus.VALIDATED
        assert service.orders.read_state(order.id).status == OrderStatus.VALIDATED
        assert dispatcher.attempts == 3
        assert len(listener.failures) == 3
        assert service.audit.verify(order.id) == OrderStatus.VALIDATED
