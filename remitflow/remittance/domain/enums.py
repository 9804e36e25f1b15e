"""Domain enums for the remittance order lifecycle."""

from enum import Enum


class OrderStatus(str, Enum):
    """Remittance order status.

    Lifecycle:
        CREATED → PROOF_UPLOADED → VALIDATED → PROCESSING → DELIVERED → COMPLETED
        PROOF_UPLOADED → REJECTED → PROOF_UPLOADED (resubmission)
        any non-terminal state before DELIVERED → CANCELLED
    """

    CREATED = "created"  # Waiting for the sender's payment proof
    PROOF_UPLOADED = "proof_uploaded"  # Proof submitted, waiting for admin validation
    VALIDATED = "validated"  # Payment validated, ready to process
    REJECTED = "rejected"  # Proof rejected, sender may resubmit
    PROCESSING = "processing"  # Delivery in progress (SLA clock running)
    DELIVERED = "delivered"  # Handed to recipient, waiting to be closed
    COMPLETED = "completed"  # Closed
    CANCELLED = "cancelled"  # Cancelled

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class ActorRole(str, Enum):
    """Role of an already-authenticated actor."""

    SENDER = "sender"
    ADMIN = "admin"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_profile_role(cls, role: str) -> "ActorRole":
        """Map a user-profile role ('user', 'admin', 'super_admin') to an actor role."""
        if role.lower() in ("admin", "super_admin"):
            return cls.ADMIN
        return cls.SENDER


class TransitionKind(str, Enum):
    """Operations that move an order between statuses."""

    CREATE = "create"
    UPLOAD_PROOF = "upload_proof"
    VALIDATE_PAYMENT = "validate_payment"
    REJECT_PAYMENT = "reject_payment"
    START_PROCESSING = "start_processing"
    CONFIRM_DELIVERY = "confirm_delivery"
    COMPLETE = "complete"
    CANCEL = "cancel"

    def __str__(self) -> str:
        return self.value


class RejectionReason(str, Enum):
    """Why a transition guard refused to apply a transition."""

    STALE_STATE = "stale_state"  # Someone else already transitioned the order
    UNAUTHORIZED_ACTOR = "unauthorized_actor"  # Role or ownership not permitted
    INVALID_TARGET = "invalid_target"  # Transition not legal from the current status
    MISSING_REQUIRED_FIELD = "missing_required_field"  # Payload incomplete

    def __str__(self) -> str:
        return self.value


class AlertSeverity(str, Enum):
    """SLA alert severity."""

    OK = "ok"
    WARNING = "warning"
    BREACH = "breach"

    def __str__(self) -> str:
        return self.value


class DeliveryMethod(str, Enum):
    """How the recipient receives the money."""

    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"

    def __str__(self) -> str:
        return self.value


class ProofKind(str, Enum):
    """Stored proof references on an order."""

    PAYMENT = "payment"
    DELIVERY = "delivery"

    def __str__(self) -> str:
        return self.value


class EventKind(str, Enum):
    """Realtime event kinds."""

    STATUS_CHANGED = "status_changed"
    ALERT_RAISED = "alert_raised"

    def __str__(self) -> str:
        return self.value
