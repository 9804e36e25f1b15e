"""Administrator management of remittance types.

Editing a type affects only orders created afterwards: every order carries a
snapshot of the rates and commission it was priced with.
"""

from decimal import Decimal
from typing import Any

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ....exceptions import DatabaseError, RecordNotFoundError, ValidationError, wrap_exception
from ....utils.logging import get_logger
from ...domain.enums import DeliveryMethod
from ...domain.models import RemittanceType
from ...infrastructure.repository import RemittanceTypeRepository

logger = get_logger(__name__)


class RemittanceTypeInput(BaseModel):
    """Validated fields of a remittance type."""

    name: str = Field(..., min_length=1, max_length=200)
    currency_code: str = Field(..., min_length=3, max_length=10, description="Sent currency")
    delivery_currency: str = Field(..., min_length=3, max_length=10)
    exchange_rate: Decimal = Field(..., gt=0, description="Delivery units per sent unit")
    commission_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    commission_fixed: Decimal = Field(Decimal("0"), ge=0)
    min_amount: Decimal = Field(..., gt=0)
    max_amount: Decimal | None = Field(None, gt=0, description="None = no upper limit")
    delivery_method: DeliveryMethod = DeliveryMethod.CASH
    max_delivery_days: int = Field(3, ge=1)
    warning_days: int = Field(2, ge=0)
    display_order: int = 0
    description: str | None = None

    @field_validator("currency_code", "delivery_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @model_validator(mode="after")
    def check_ranges(self) -> "RemittanceTypeInput":
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError("max_amount must not be lower than min_amount")
        if self.warning_days > self.max_delivery_days:
            raise ValueError("warning_days must not exceed max_delivery_days")
        return self


def _validate(data: dict[str, Any]) -> RemittanceTypeInput:
    try:
        return RemittanceTypeInput(**data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(
            f"Invalid remittance type: {first['msg']}", field=field, original_error=e
        ) from e


class RemittanceTypeService:
    """Create, edit, deactivate and list remittance types."""

    def __init__(self, session: Session):
        self.session = session
        self.types = RemittanceTypeRepository(session)

    def create_type(self, **fields: Any) -> RemittanceType:
        data = _validate(fields)
        remittance_type = RemittanceType(**data.model_dump(), is_active=True)
        self._commit(lambda: self.types.add(remittance_type), "create")
        logger.info(
            "remittance_type_created",
            type_id=remittance_type.id,
            name=remittance_type.name,
            currencies=f"{remittance_type.currency_code}->{remittance_type.delivery_currency}",
            exchange_rate=str(remittance_type.exchange_rate),
        )
        return remittance_type

    def update_type(self, type_id: int, **changes: Any) -> RemittanceType:
        """Edit a type. Existing orders keep the economics they were created with."""
        remittance_type = self.get_type(type_id)
        current = {name: getattr(remittance_type, name) for name in RemittanceTypeInput.model_fields}
        unknown = set(changes) - set(current)
        if unknown:
            raise ValidationError(
                f"Unknown remittance type field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        data = _validate({**current, **changes})
        for name in changes:
            setattr(remittance_type, name, getattr(data, name))

        self._commit(self.session.flush, "update")
        logger.info("remittance_type_updated", type_id=type_id, fields=sorted(changes))
        return remittance_type

    def deactivate_type(self, type_id: int) -> RemittanceType:
        """Stop accepting new orders for a type. Existing orders are unaffected."""
        remittance_type = self.get_type(type_id)
        if not remittance_type.is_active:
            return remittance_type

        remittance_type.is_active = False
        self._commit(self.session.flush, "deactivate")
        logger.info("remittance_type_deactivated", type_id=type_id, name=remittance_type.name)
        return remittance_type

    def get_type(self, type_id: int) -> RemittanceType:
        remittance_type = self.types.get_by_id(type_id)
        if remittance_type is None:
            raise RecordNotFoundError(
                f"Remittance type {type_id} not found",
                entity_type="RemittanceType",
                entity_id=type_id,
            )
        return remittance_type

    def list_types(self, active_only: bool = False) -> list[RemittanceType]:
        return self.types.find_all(active_only=active_only)

    def _commit(self, write: Any, action: str) -> None:
        try:
            write()
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise wrap_exception(
                e,
                f"Failed to {action} remittance type",
                exception_class=DatabaseError,
                action=action,
            ) from e
