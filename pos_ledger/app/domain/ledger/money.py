"""
Money helpers.

Every amount that reaches the ledger passes through ``to_money``: exact
Decimal, two places, half-up. Binary floats are accepted only through their
string form so 0.1 stays 0.10.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from pos_ledger.app.core.exceptions import ValidationError

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value, field: str = "amount") -> Decimal:
    """
    Convert ``value`` to a quantized Decimal.

    Raises:
        ValidationError: for None, booleans, non-numeric or non-finite input
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", details={"field": field})

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} is not a valid amount", details={"field": field, "value": str(value)})

    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", details={"field": field, "value": str(value)})

    return amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def require_positive(value, field: str = "amount") -> Decimal:
    amount = to_money(value, field)
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than zero", details={"field": field, "value": str(amount)})
    return amount


def require_non_negative(value, field: str = "amount") -> Decimal:
    amount = to_money(value, field)
    if amount < ZERO:
        raise ValidationError(f"{field} cannot be negative", details={"field": field, "value": str(amount)})
    return amount
