"""Order lifecycle service.

Every operation is one unit of work on the order store:

1. read the persisted guard state (status, version, owner)
2. evaluate the transition guards
3. conditional write ``UPDATE ... WHERE status = :expected AND version = :seen``
4. append the audit entry in the same transaction, then commit
5. publish ``OrderStatusChanged`` on the event bus

Nothing is published unless the status write and its audit entry committed
together. Listener failures (notifications, realtime fan-out) never reach the
caller and never revert the order.
"""

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ....core.events.base import GlobalEventBus, get_global_event_bus
from ....exceptions import (
    DatabaseError,
    RecordNotFoundError,
    TransitionRejectedError,
    ValidationError,
    wrap_exception,
)
from ....utils.config import Settings, get_settings
from ....utils.datetime import ensure_utc, utc_now
from ....utils.logging import get_logger, log_transition
from ...domain.enums import (
    OrderStatus,
    ProofKind,
    RejectionReason,
    TransitionKind,
)
from ...domain.events import OrderStatusChanged
from ...domain.models import AuditEntry, Order
from ...domain.state_machine import check_transition
from ...domain.value_objects import Actor, RecipientConfirmation, RecipientDetails
from ...infrastructure.repository import OrderRepository, OrderState, RemittanceTypeRepository
from ..collaborators import ProofStorageResolver, StaticURLResolver
from .audit import AuditTrail
from .settlement import quote

logger = get_logger(__name__)

# Attempts at allocating a unique order number when creators race
ORDER_NUMBER_ATTEMPTS = 10


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


class OrderLifecycleService:
    """Creates orders and moves them through their lifecycle.

    The only writer of ``Order.status``, its transition stamps and the audit trail.
    """

    def __init__(
        self,
        session: Session,
        *,
        event_bus: GlobalEventBus | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        proof_resolver: ProofStorageResolver | None = None,
    ):
        """Initialize the service.

        Args:
            session: Database session; each operation commits its own transaction
            event_bus: Bus receiving OrderStatusChanged (default: global bus)
            settings: Application settings (default: global settings)
            clock: Returns the current aware UTC time (default: utc_now)
            proof_resolver: Resolves stored proof references to URLs
        """
        self.session = session
        self.settings = settings or get_settings()
        self.event_bus = event_bus or get_global_event_bus()
        self.clock = clock or utc_now
        self.proof_resolver = proof_resolver or StaticURLResolver(self.settings.proof_base_url)

        self.orders = OrderRepository(session)
        self.types = RemittanceTypeRepository(session)
        self.audit = AuditTrail(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(
        self,
        sender_id: str,
        type_id: int,
        amount_sent: Decimal | int | float | str,
        recipient: RecipientDetails,
    ) -> Order:
        """Validate, price and persist a new order in status ``created``.

        Raises:
            RecordNotFoundError: If the remittance type does not exist
            ConfigInactiveError: If the type no longer accepts orders
            AmountOutOfRangeError: If the amount is outside the type limits
            ValidationError: If required recipient fields are missing
        """
        actor = Actor.sender(sender_id)

        missing = recipient.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing required recipient field(s): {', '.join(missing)}",
                field=missing[0],
            )

        remittance_type = self.types.get_by_id(type_id)
        if remittance_type is None:
            raise RecordNotFoundError(
                f"Remittance type {type_id} not found",
                entity_type="RemittanceType",
                entity_id=type_id,
            )

        settlement = quote(
            remittance_type, amount_sent, minor_units=self.settings.currency_minor_units
        )
        currency_sent = remittance_type.currency_code
        currency_delivered = remittance_type.delivery_currency
        now = ensure_utc(self.clock())

        order: Order | None = None
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order = Order(
                order_number=self._next_order_number(now),
                owner_id=actor.actor_id,
                remittance_type_id=type_id,
                amount_sent=settlement.amount_sent,
                exchange_rate=settlement.exchange_rate,
                commission_percentage=settlement.commission_percentage,
                commission_fixed=settlement.commission_fixed,
                commission_total=settlement.commission,
                amount_to_deliver=settlement.amount_to_deliver,
                currency_sent=currency_sent,
                currency_delivered=currency_delivered,
                recipient_name=recipient.name.strip(),
                recipient_phone=recipient.phone.strip(),
                recipient_id_number=recipient.id_number,
                recipient_address=recipient.address,
                recipient_province=recipient.province,
                recipient_municipality=recipient.municipality,
                delivery_notes=recipient.notes,
                status=OrderStatus.CREATED,
                version=1,
                created_at=now,
                last_transition_at=now,
            )
            try:
                self.orders.add(order)
                self.audit.append(
                    order_id=order.id,
                    sequence=1,
                    previous_status=None,
                    new_status=OrderStatus.CREATED,
                    actor=actor,
                    at=now,
                )
                self.session.commit()
                break
            except IntegrityError as e:
                self.session.rollback()
                logger.warning(
                    "order_number_collision",
                    order_number=order.order_number,
                    attempt=attempt,
                )
                if attempt == ORDER_NUMBER_ATTEMPTS:
                    raise wrap_exception(
                        e,
                        "Could not allocate a unique order number",
                        exception_class=DatabaseError,
                        attempts=attempt,
                    ) from e
            except SQLAlchemyError as e:
                self.session.rollback()
                raise wrap_exception(
                    e, "Failed to create order", exception_class=DatabaseError, type_id=type_id
                ) from e

        self.session.refresh(order)

        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            owner_id=order.owner_id,
            type_id=type_id,
            amount_sent=str(order.amount_sent),
            currency=order.currency_sent,
            commission=str(order.commission_total),
            amount_to_deliver=str(order.amount_to_deliver),
        )
        self.event_bus.publish(
            OrderStatusChanged(
                order_id=order.id,
                order_number=order.order_number,
                owner_id=order.owner_id,
                previous_status=None,
                new_status=OrderStatus.CREATED,
                actor_id=actor.actor_id,
                version=order.version,
                amount_sent=order.amount_sent,
                currency_sent=order.currency_sent,
            )
        )
        log_transition(
            logger, order.id, order.order_number, None, OrderStatus.CREATED.value, actor.actor_id
        )
        return order

    def _next_order_number(self, now: datetime) -> str:
        """Next ``PREFIX-YYYY-NNNN`` number; the sequence restarts every year."""
        prefix = f"{self.settings.order_number_prefix}-{now.year}-"
        return f"{prefix}{self.orders.highest_sequence_for_prefix(prefix) + 1:04d}"

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def upload_proof(
        self,
        order_id: int,
        expected_status: OrderStatus,
        actor: Actor,
        proof_ref: str,
        reference: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """Attach the sender's payment proof (first submission or after a rejection)."""
        return self._apply(
            TransitionKind.UPLOAD_PROOF,
            order_id,
            expected_status,
            actor,
            changes={
                "payment_proof_ref": proof_ref,
                "payment_reference": reference,
                "payment_proof_notes": notes,
            },
            stamp="payment_proof_uploaded_at",
            missing=["proof_ref"] if _blank(proof_ref) else [],
            notes=notes,
        )

    def validate_payment(
        self,
        order_id: int,
        expected_status: OrderStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> Order:
        return self._apply(
            TransitionKind.VALIDATE_PAYMENT,
            order_id,
            expected_status,
            actor,
            changes={"validated_by": actor.actor_id},
            stamp="validated_at",
            notes=notes,
        )

    def reject_payment(
        self,
        order_id: int,
        expected_status: OrderStatus,
        actor: Actor,
        reason: str,
    ) -> Order:
        """Reject the payment proof; the sender may upload a new one."""
        return self._apply(
            TransitionKind.REJECT_PAYMENT,
            order_id,
            expected_status,
            actor,
            changes={"rejected_by": actor.actor_id, "rejection_reason": reason},
            stamp="rejected_at",
            missing=["reason"] if _blank(reason) else [],
            reason=reason,
        )

    def start_processing(
        self,
        order_id: int,
        expected_status: OrderStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> Order:
        """Begin delivery. The processing stamp anchors SLA alerting."""
        return self._apply(
            TransitionKind.START_PROCESSING,
            order_id,
            expected_status,
            actor,
            changes={"processing_started_by": actor.actor_id},
            stamp="processing_started_at",
            notes=notes,
        )

    def confirm_delivery(
        self,
        order_id: int,
        expected_status: OrderStatus,
        actor: Actor,
        proof_ref: str,
        confirmation: RecipientConfirmation,
    ) -> Order:
        """Record the hand-over with its proof and the recipient's identity."""
        missing = ["delivery_proof_ref"] if _blank(proof_ref) else []
        missing.extend(confirmation.missing_fields())
        return self._apply(
            TransitionKind.CONFIRM_DELIVERY,
            order_id,
            expected_status,
            actor,
            changes={
                "delivery_proof_ref": proof_ref,
                "delivered_to_name": confirmation.name,
                "delivered_to_id": confirmation.id_number,
                "delivery_notes_admin": confirmation.notes,
                "delivered_by": actor.actor_id,
            },
            stamp="delivered_at",
            missing=missing,
            notes=confirmation.notes,
        )

    def complete(
        self,
        order_id: int,
        expected_status: OrderStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> Order:
        return self._apply(
            TransitionKind.COMPLETE,
            order_id,
            expected_status,
            actor,
            changes={"completed_by": actor.actor_id},
            stamp="completed_at",
            notes=notes,
        )

    def cancel(
        self,
        order_id: int,
        expected_status: OrderStatus,
        actor: Actor,
        reason: str,
    ) -> Order:
        """Cancel before delivery. Senders may cancel only until payment is validated."""
        return self._apply(
            TransitionKind.CANCEL,
            order_id,
            expected_status,
            actor,
            changes={"cancelled_by": actor.actor_id, "cancellation_reason": reason},
            stamp="cancelled_at",
            missing=["reason"] if _blank(reason) else [],
            reason=reason,
        )

    def _apply(
        self,
        kind: TransitionKind,
        order_id: int,
        expected: OrderStatus,
        actor: Actor,
        *,
        changes: dict[str, Any],
        stamp: str,
        missing: list[str] | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Order:
        state = self.orders.read_state(order_id)
        if state is None:
            self.session.rollback()
            raise RecordNotFoundError(
                f"Order {order_id} not found", entity_type="Order", entity_id=order_id
            )

        try:
            target = check_transition(
                kind,
                order_id=order_id,
                persisted=state.status,
                expected=expected,
                actor=actor,
                owner_id=state.owner_id,
            )
            if missing:
                raise TransitionRejectedError(
                    f"Missing required field(s): {', '.join(missing)}",
                    reason=RejectionReason.MISSING_REQUIRED_FIELD,
                    order_id=order_id,
                    current_status=state.status.value,
                    attempted_action=kind.value,
                )
        except TransitionRejectedError as e:
            self.session.rollback()
            self._log_rejection(e, kind, actor)
            raise

        now = self._transition_time(order_id, state)
        values = {**changes, stamp: now, "last_transition_at": now}

        try:
            applied = self.orders.compare_and_set_status(
                order_id, expected, state.version, target, values
            )
            if not applied:
                self.session.rollback()
                error = TransitionRejectedError(
                    f"Order {order_id} changed while {kind.value} was being applied",
                    reason=RejectionReason.STALE_STATE,
                    order_id=order_id,
                    attempted_action=kind.value,
                )
                self._log_rejection(error, kind, actor)
                raise error

            self.audit.append(
                order_id=order_id,
                sequence=state.version + 1,
                previous_status=expected,
                new_status=target,
                actor=actor,
                at=now,
                reason=reason,
                notes=notes,
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(
                "transition_write_failed",
                order_id=order_id,
                action=kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise wrap_exception(
                e,
                f"Failed to apply {kind.value}",
                exception_class=DatabaseError,
                order_id=order_id,
                action=kind.value,
            ) from e

        order = self.orders.get_by_id(order_id)
        self.session.refresh(order)

        self.event_bus.publish(
            OrderStatusChanged(
                order_id=order.id,
                order_number=order.order_number,
                owner_id=order.owner_id,
                previous_status=expected,
                new_status=target,
                actor_id=actor.actor_id,
                version=order.version,
                reason=reason,
            )
        )
        log_transition(
            logger, order.id, order.order_number, expected.value, target.value, actor.actor_id
        )
        return order

    def _transition_time(self, order_id: int, state: OrderState) -> datetime:
        """Current time, never earlier than the order's previous transition."""
        now = ensure_utc(self.clock())
        if now < state.last_transition_at:
            logger.warning(
                "clock_behind_last_transition",
                order_id=order_id,
                now=now.isoformat(),
                last_transition_at=state.last_transition_at.isoformat(),
            )
            return state.last_transition_at
        return now

    @staticmethod
    def _log_rejection(error: TransitionRejectedError, kind: TransitionKind, actor: Actor) -> None:
        logger.warning(
            "transition_rejected",
            action=kind.value,
            reason=error.reason.value,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            **{k: v for k, v in error.context.items() if k in ("order_id", "current_status")},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self.orders.get_by_id(order_id)
        if order is None:
            raise RecordNotFoundError(
                f"Order {order_id} not found", entity_type="Order", entity_id=order_id
            )
        return order

    def list_orders(
        self,
        owner_id: str | None = None,
        status: OrderStatus | None = None,
        limit: int | None = None,
    ) -> list[Order]:
        """Orders newest first. ``owner_id=None`` lists every order (admin view)."""
        return self.orders.find(owner_id=owner_id, status=status, limit=limit)

    def list_audit_trail(self, order_id: int) -> list[AuditEntry]:
        """Audit entries of one order in transition order."""
        return self.audit.list_entries(order_id)

    def resolve_proof_url(self, order_id: int, kind: ProofKind) -> str | None:
        """Retrievable URL of a stored proof, or None if none was uploaded yet."""
        order = self.get_order(order_id)
        reference = (
            order.payment_proof_ref if kind == ProofKind.PAYMENT else order.delivery_proof_ref
        )
        if not reference:
            return None
        return self.proof_resolver.resolve(reference)
