"""Settlement calculator.

    commission        = amount_sent * commission_percentage / 100 + commission_fixed
    amount_to_deliver = (amount_sent - commission) * exchange_rate

Both results are rounded half-up to the currency's minor unit exactly once,
from the unrounded intermediate values.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ....exceptions import AmountOutOfRangeError, ConfigInactiveError, ValidationError
from ...domain.models import RemittanceType
from ...domain.value_objects import Settlement

HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str, field: str) -> Decimal:
    """Coerce user input to Decimal without binary float artifacts."""
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} is not a valid number", field=field, value=value) from e
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field, value=value)
    return result


def quantum(minor_units: int) -> Decimal:
    return Decimal(1).scaleb(-minor_units)


def compute_settlement(
    amount_sent: Decimal | int | float | str,
    exchange_rate: Decimal | int | float | str,
    commission_percentage: Decimal | int | float | str,
    commission_fixed: Decimal | int | float | str,
    *,
    sent_minor_units: int = 2,
    delivered_minor_units: int = 2,
) -> Settlement:
    """Price one remittance amount.

    Pure and deterministic: identical inputs always give identical outputs.

    Args:
        amount_sent: Amount paid by the sender (sent currency)
        exchange_rate: Delivery-currency units per sent-currency unit
        commission_percentage: Percentage commission (0-100)
        commission_fixed: Fixed commission (sent currency)
        sent_minor_units: Decimal places of the sent currency
        delivered_minor_units: Decimal places of the delivery currency

    Returns:
        Settlement with rounded commission and delivery amount

    Raises:
        ValidationError: If an input is not a number or violates its domain
    """
    amount = to_decimal(amount_sent, "amount_sent")
    rate = to_decimal(exchange_rate, "exchange_rate")
    percentage = to_decimal(commission_percentage, "commission_percentage")
    fixed = to_decimal(commission_fixed, "commission_fixed")

    if amount <= 0:
        raise ValidationError("amount_sent must be positive", field="amount_sent", value=amount)
    if rate <= 0:
        raise ValidationError("exchange_rate must be positive", field="exchange_rate", value=rate)
    if not Decimal("0") <= percentage <= HUNDRED:
        raise ValidationError(
            "commission_percentage must be between 0 and 100",
            field="commission_percentage",
            value=percentage,
        )
    if fixed < 0:
        raise ValidationError(
            "commission_fixed must not be negative", field="commission_fixed", value=fixed
        )

    commission = amount * percentage / HUNDRED + fixed
    net_amount = amount - commission
    if net_amount < 0:
        raise ValidationError(
            "Commission exceeds the amount sent",
            field="amount_sent",
            value=amount,
            constraint=f"commission={commission}",
        )
    delivered = net_amount * rate

    return Settlement(
        amount_sent=amount,
        exchange_rate=rate,
        commission_percentage=percentage,
        commission_fixed=fixed,
        commission=commission.quantize(quantum(sent_minor_units), rounding=ROUND_HALF_UP),
        amount_to_deliver=delivered.quantize(
            quantum(delivered_minor_units), rounding=ROUND_HALF_UP
        ),
    )


def check_precision(amount: Decimal, minor_units: int, currency: str) -> None:
    """Reject amounts finer than the currency's minor unit.

    Raises:
        ValidationError: If ``amount`` has more decimal places than ``minor_units``
    """
    if amount.normalize().as_tuple().exponent < -minor_units:
        raise ValidationError(
            f"Amount {amount} has more than {minor_units} decimal place(s) for {currency}",
            field="amount_sent",
            value=amount,
            constraint=f"minor_units={minor_units}",
        )


def validate_amount(remittance_type: RemittanceType, amount_sent: Decimal) -> None:
    """Check that a type accepts orders and that the amount lies within its limits.

    Raises:
        ConfigInactiveError: If the type is deactivated
        AmountOutOfRangeError: If the amount is below min or above max
    """
    if not remittance_type.is_active:
        raise ConfigInactiveError(
            f"Remittance type '{remittance_type.name}' is not accepting new orders",
            type_id=remittance_type.id,
        )

    too_low = amount_sent < remittance_type.min_amount
    too_high = remittance_type.max_amount is not None and amount_sent > remittance_type.max_amount
    if too_low or too_high:
        raise AmountOutOfRangeError(
            amount_sent,
            min_amount=remittance_type.min_amount,
            max_amount=remittance_type.max_amount,
            currency=remittance_type.currency_code,
        )


def quote(
    remittance_type: RemittanceType,
    amount_sent: Decimal | int | float | str,
    *,
    minor_units: dict[str, int] | None = None,
) -> Settlement:
    """Validate an amount against a type and price it with the type's current rates."""
    minor_units = minor_units or {}
    sent_units = minor_units.get(remittance_type.currency_code.upper(), 2)

    amount = to_decimal(amount_sent, "amount_sent")
    check_precision(amount, sent_units, remittance_type.currency_code)
    validate_amount(remittance_type, amount)

    return compute_settlement(
        amount,
        remittance_type.exchange_rate,
        remittance_type.commission_percentage,
        remittance_type.commission_fixed,
        sent_minor_units=sent_units,
        delivered_minor_units=minor_units.get(remittance_type.delivery_currency.upper(), 2),
    )
