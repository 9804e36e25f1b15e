"""Order status state machine.

Pure rules: which transition may leave which status, where it lands, and
which actor may trigger it. Persistence and the optimistic concurrency guard
live in the lifecycle service; this module only decides.
"""

from dataclasses import dataclass

from ...exceptions import TransitionRejectedError
from .enums import ActorRole, OrderStatus, RejectionReason, TransitionKind
from .value_objects import Actor

# Statuses a sender may still cancel from (before an administrator validated payment)
SENDER_CANCELLABLE = frozenset(
    {OrderStatus.CREATED, OrderStatus.PROOF_UPLOADED, OrderStatus.REJECTED}
)


@dataclass(frozen=True)
class TransitionRule:
    """Legal sources, target and permitted roles of one transition."""

    kind: TransitionKind
    sources: frozenset[OrderStatus]
    target: OrderStatus
    roles: frozenset[ActorRole]

    def role_allowed(self, actor: Actor, source: OrderStatus) -> bool:
        if actor.role not in self.roles:
            return False
        if self.kind == TransitionKind.CANCEL and actor.role == ActorRole.SENDER:
            return source in SENDER_CANCELLABLE
        return True


_ADMIN = frozenset({ActorRole.ADMIN})
_SENDER = frozenset({ActorRole.SENDER})

RULES: dict[TransitionKind, TransitionRule] = {
    rule.kind: rule
    for rule in (
        TransitionRule(
            TransitionKind.UPLOAD_PROOF,
            frozenset({OrderStatus.CREATED, OrderStatus.REJECTED}),
            OrderStatus.PROOF_UPLOADED,
            _SENDER,
        ),
        TransitionRule(
            TransitionKind.VALIDATE_PAYMENT,
            frozenset({OrderStatus.PROOF_UPLOADED}),
            OrderStatus.VALIDATED,
            _ADMIN,
        ),
        TransitionRule(
            TransitionKind.REJECT_PAYMENT,
            frozenset({OrderStatus.PROOF_UPLOADED}),
            OrderStatus.REJECTED,
            _ADMIN,
        ),
        TransitionRule(
            TransitionKind.START_PROCESSING,
            frozenset({OrderStatus.VALIDATED}),
            OrderStatus.PROCESSING,
            _ADMIN,
        ),
        TransitionRule(
            TransitionKind.CONFIRM_DELIVERY,
            frozenset({OrderStatus.PROCESSING}),
            OrderStatus.DELIVERED,
            _ADMIN,
        ),
        TransitionRule(
            TransitionKind.COMPLETE,
            frozenset({OrderStatus.DELIVERED}),
            OrderStatus.COMPLETED,
            _ADMIN,
        ),
        TransitionRule(
            TransitionKind.CANCEL,
            frozenset(
                {
                    OrderStatus.CREATED,
                    OrderStatus.PROOF_UPLOADED,
                    OrderStatus.REJECTED,
                    OrderStatus.VALIDATED,
                    OrderStatus.PROCESSING,
                }
            ),
            OrderStatus.CANCELLED,
            _ADMIN | _SENDER,
        ),
    )
}

LEGAL_EDGES: frozenset[tuple[OrderStatus, OrderStatus]] = frozenset(
    (source, rule.target) for rule in RULES.values() for source in rule.sources
)


def available_transitions(status: OrderStatus) -> list[TransitionKind]:
    """Transitions that may leave ``status`` for at least one role."""
    return [kind for kind, rule in RULES.items() if status in rule.sources]


def is_legal_edge(previous: OrderStatus, new: OrderStatus) -> bool:
    return (previous, new) in LEGAL_EDGES


def check_transition(
    kind: TransitionKind,
    *,
    order_id: int,
    persisted: OrderStatus,
    expected: OrderStatus,
    actor: Actor,
    owner_id: str,
) -> OrderStatus:
    """Evaluate the guards of one transition and return its target status.

    Guards run in this order: stale state, invalid target, unauthorized actor.
    Payload completeness is checked by the caller.

    Raises:
        TransitionRejectedError: If any guard fails
    """
    rule = RULES[kind]

    if persisted != expected:
        raise TransitionRejectedError(
            f"Order {order_id} is '{persisted.value}', not '{expected.value}'",
            reason=RejectionReason.STALE_STATE,
            order_id=order_id,
            current_status=persisted.value,
            attempted_action=kind.value,
        )

    if persisted not in rule.sources:
        raise TransitionRejectedError(
            f"Cannot {kind.value} an order in status '{persisted.value}'",
            reason=RejectionReason.INVALID_TARGET,
            order_id=order_id,
            current_status=persisted.value,
            attempted_action=kind.value,
        )

    owns_order = actor.role != ActorRole.SENDER or actor.actor_id == owner_id
    if not rule.role_allowed(actor, persisted) or not owns_order:
        raise TransitionRejectedError(
            "You are not authorized for this action",
            reason=RejectionReason.UNAUTHORIZED_ACTOR,
            order_id=order_id,
            current_status=persisted.value,
            attempted_action=kind.value,
        )

    return rule.target
