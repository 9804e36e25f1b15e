"""Domain entities for the remittance lifecycle.

Entities in DDD:
- Have identity (unique ID)
- Mutable lifecycle (orders change only through the lifecycle service)
- Mapped to database tables via SQLAlchemy
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...exceptions import DatabaseIntegrityError
from ...storage.database.base import Base, IntPKMixin, TimestampMixin, UTCDateTime
from ...utils.datetime import utc_now
from .enums import DeliveryMethod, OrderStatus


def _enum_column(enum_cls: type) -> Enum:
    """Store enum values (not member names) in a portable VARCHAR column."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class RemittanceType(IntPKMixin, TimestampMixin, Base):
    """Administrator-managed remittance configuration.

    Orders snapshot the economic fields at creation, so editing a type never
    changes an existing order's commission or delivery amount.
    """

    __tablename__ = "remittance_types"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    delivery_currency: Mapped[str] = mapped_column(String(10), nullable=False)

    # Rates and commission
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    commission_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    commission_fixed: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    min_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))  # None = no limit

    # Delivery SLA
    delivery_method: Mapped[DeliveryMethod] = mapped_column(
        _enum_column(DeliveryMethod), nullable=False, default=DeliveryMethod.CASH
    )
    max_delivery_days: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    warning_days: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    # Visibility
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(Text)

    orders: Mapped[list[Order]] = relationship(back_populates="remittance_type")

    def __repr__(self) -> str:
        return (
            f"<RemittanceType(id={self.id}, name='{self.name}', "
            f"{self.currency_code}->{self.delivery_currency}, active={self.is_active})>"
        )


class Order(IntPKMixin, TimestampMixin, Base):
    """Remittance order.

    Economic fields are captured at creation and never edited afterwards.
    Status and transition stamps are written only by the lifecycle service
    through a conditional update on ``status``.
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    # References
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    remittance_type_id: Mapped[int] = mapped_column(
        ForeignKey("remittance_types.id"), nullable=False, index=True
    )
    remittance_type: Mapped[RemittanceType] = relationship(back_populates="orders")

    # Amounts (snapshot at creation)
    amount_sent: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    commission_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    commission_fixed: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    commission_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    amount_to_deliver: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency_sent: Mapped[str] = mapped_column(String(10), nullable=False)
    currency_delivered: Mapped[str] = mapped_column(String(10), nullable=False)

    # Recipient
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    recipient_id_number: Mapped[str | None] = mapped_column(String(50))
    recipient_address: Mapped[str | None] = mapped_column(Text)
    recipient_province: Mapped[str | None] = mapped_column(String(100))
    recipient_municipality: Mapped[str | None] = mapped_column(String(100))
    delivery_notes: Mapped[str | None] = mapped_column(Text)

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        _enum_column(OrderStatus), nullable=False, default=OrderStatus.CREATED
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_transition_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utc_now
    )

    # Payment proof (sender)
    payment_proof_ref: Mapped[str | None] = mapped_column(Text)
    payment_reference: Mapped[str | None] = mapped_column(String(200))
    payment_proof_notes: Mapped[str | None] = mapped_column(Text)
    payment_proof_uploaded_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Validation / rejection (admin)
    validated_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    validated_by: Mapped[str | None] = mapped_column(String(64))
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    rejected_by: Mapped[str | None] = mapped_column(String(64))
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    # Processing (admin) - anchors SLA alerting
    processing_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    processing_started_by: Mapped[str | None] = mapped_column(String(64))

    # Delivery evidence (admin)
    delivery_proof_ref: Mapped[str | None] = mapped_column(Text)
    delivered_to_name: Mapped[str | None] = mapped_column(String(200))
    delivered_to_id: Mapped[str | None] = mapped_column(String(50))
    delivery_notes_admin: Mapped[str | None] = mapped_column(Text)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    delivered_by: Mapped[str | None] = mapped_column(String(64))

    # Closing
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    completed_by: Mapped[str | None] = mapped_column(String(64))
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    cancelled_by: Mapped[str | None] = mapped_column(String(64))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    audit_entries: Mapped[list[AuditEntry]] = relationship(
        back_populates="order",
        order_by="AuditEntry.sequence",
        viewonly=True,
    )

    __table_args__ = (
        Index("ix_orders_status_created_at", "status", "created_at"),
        Index("ix_orders_owner_created_at", "owner_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, number='{self.order_number}', "
            f"status='{self.status.value}', version={self.version})>"
        )

    def stage_timestamps(self) -> list[tuple[str, datetime | None]]:
        """Happy-path stamps in lifecycle order."""
        return [
            ("created_at", self.created_at),
            ("payment_proof_uploaded_at", self.payment_proof_uploaded_at),
            ("validated_at", self.validated_at),
            ("processing_started_at", self.processing_started_at),
            ("delivered_at", self.delivered_at),
            ("completed_at", self.completed_at),
        ]


class AuditEntry(IntPKMixin, Base):
    """Immutable record of one status transition.

    ``sequence`` equals the order's ``version`` right after the transition,
    so entries of one order are totally ordered even when timestamps tie.
    """

    __tablename__ = "order_audit_entries"

    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False)
    order: Mapped[Order] = relationship(back_populates="audit_entries")

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_status: Mapped[OrderStatus | None] = mapped_column(_enum_column(OrderStatus))
    new_status: Mapped[OrderStatus] = mapped_column(_enum_column(OrderStatus), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="uq_order_audit_entries_order_sequence"),
        Index("ix_order_audit_entries_order_created", "order_id", "created_at"),
    )

    def __repr__(self) -> str:
        previous = self.previous_status.value if self.previous_status else None
        return (
            f"<AuditEntry(order_id={self.order_id}, seq={self.sequence}, "
            f"{previous}->{self.new_status.value})>"
        )


@event.listens_for(AuditEntry, "before_update")
def _reject_audit_update(mapper, connection, target: AuditEntry) -> None:
    raise DatabaseIntegrityError(
        "Audit entries are append-only", context={"order_id": target.order_id}
    )


@event.listens_for(AuditEntry, "before_delete")
def _reject_audit_delete(mapper, connection, target: AuditEntry) -> None:
    raise DatabaseIntegrityError(
        "Audit entries are append-only", context={"order_id": target.order_id}
    )
