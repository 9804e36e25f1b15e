"""Standardized exception hierarchy for RemitFlow.

All exceptions carry a human-readable message plus structured context so they
can be logged with structlog without string parsing.

Usage:
    from remitflow.exceptions import TransitionRejectedError

    try:
        service.validate_payment(order_id, OrderStatus.PROOF_UPLOADED, admin)
    except TransitionRejectedError as e:
        logger.warning("transition_rejected", reason=e.reason.value, context=e.context)
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from remitflow.remittance.domain.enums import RejectionReason


class RemitFlowError(Exception):
    """Base exception for all RemitFlow errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Validation & Input Errors
# =============================================================================


class ValidationError(RemitFlowError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        if constraint:
            context["constraint"] = constraint
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class ConfigurationError(RemitFlowError):
    """Raised when application configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if setting:
            context["setting"] = setting
        if expected:
            context["expected"] = expected
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Database & Persistence Errors
# =============================================================================


class DatabaseError(RemitFlowError):
    """Base class for database-related errors."""


class RecordNotFoundError(DatabaseError):
    """Raised when a database record is not found."""

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: int | str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if entity_type:
            context["entity_type"] = entity_type
        if entity_id:
            context["entity_id"] = str(entity_id)
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class DatabaseIntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""


# =============================================================================
# Business Logic Errors
# =============================================================================


class BusinessLogicError(RemitFlowError):
    """Base class for business rule violations."""


class AmountOutOfRangeError(BusinessLogicError):
    """Raised when the amount sent falls outside the remittance type limits.

    The message always names the concrete range so it can be shown to the sender.
    """

    def __init__(
        self,
        amount: Decimal,
        *,
        min_amount: Decimal,
        max_amount: Decimal | None,
        currency: str,
        **kwargs: Any,
    ) -> None:
        if max_amount is None:
            message = f"Amount must be at least {min_amount} {currency}"
        else:
            message = f"Amount must be between {min_amount} and {max_amount} {currency}"
        context = kwargs.get("context", {})
        context.update(
            {
                "amount": str(amount),
                "min_amount": str(min_amount),
                "max_amount": str(max_amount) if max_amount is not None else None,
                "currency": currency,
            }
        )
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.amount = amount
        self.min_amount = min_amount
        self.max_amount = max_amount
        self.currency = currency


class ConfigInactiveError(BusinessLogicError):
    """Raised when the referenced remittance type no longer accepts new orders."""

    def __init__(self, message: str, *, type_id: int | None = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if type_id is not None:
            context["type_id"] = type_id
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class TransitionRejectedError(BusinessLogicError):
    """Raised when a guarded status transition cannot be applied.

    Attributes:
        reason: Why the guard refused the transition
        user_message: Text safe to show to the person who attempted the action
    """

    _USER_MESSAGES = {
        "stale_state": "This order was just updated by someone else, please refresh.",
        "unauthorized_actor": "You are not authorized for this action.",
        "invalid_target": "This action is not possible in the order's current status.",
        "missing_required_field": "Some required information is missing.",
    }

    def __init__(
        self,
        message: str,
        *,
        reason: RejectionReason,
        order_id: int | None = None,
        current_status: str | None = None,
        attempted_action: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        context["reason"] = reason.value
        if order_id is not None:
            context["order_id"] = order_id
        if current_status:
            context["current_status"] = current_status
        if attempted_action:
            context["attempted_action"] = attempted_action
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.reason = reason

    @property
    def user_message(self) -> str:
        if self.reason.value == "missing_required_field":
            return self.message
        return self._USER_MESSAGES[self.reason.value]


class IntegrityCheckFailedError(RemitFlowError):
    """Raised when audit trail replay does not land on the persisted status.

    Fatal: requires operator intervention and is never corrected automatically.
    """

    def __init__(
        self,
        message: str,
        *,
        mismatches: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if mismatches:
            context["mismatch_count"] = len(mismatches)
            context["order_ids"] = [m["order_id"] for m in mismatches]
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.mismatches = mismatches or []


# =============================================================================
# External Integration Errors
# =============================================================================


class IntegrationError(RemitFlowError):
    """Base class for external collaborator errors."""


class NotificationDeliveryError(IntegrationError):
    """Raised by notification dispatchers. Non-fatal: logged, never propagated."""

    def __init__(
        self,
        message: str,
        *,
        channel: str | None = None,
        order_id: int | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if channel:
            context["channel"] = channel
        if order_id is not None:
            context["order_id"] = order_id
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    error: Exception,
    message: str,
    *,
    exception_class: type[RemitFlowError] = RemitFlowError,
    **context: Any,
) -> RemitFlowError:
    """Wrap an external exception in the RemitFlow hierarchy.

    Example:
        try:
            session.commit()
        except SQLAlchemyError as e:
            raise wrap_exception(e, "Failed to apply transition",
                                 exception_class=DatabaseError, order_id=42)
    """
    return exception_class(
        message,
        context=context,
        original_error=error,
    )


__all__ = [
    "RemitFlowError",
    "ValidationError",
    "ConfigurationError",
    "DatabaseError",
    "RecordNotFoundError",
    "DatabaseIntegrityError",
    "BusinessLogicError",
    "AmountOutOfRangeError",
    "ConfigInactiveError",
    "TransitionRejectedError",
    "IntegrityCheckFailedError",
    "IntegrationError",
    "NotificationDeliveryError",
    "wrap_exception",
]
