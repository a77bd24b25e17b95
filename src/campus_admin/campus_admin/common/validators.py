from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..core.constants import MAX_HOUR, MIN_HOUR
from ..core.exceptions import ValidationError

_CENT = Decimal("0.01")


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_hour(value) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid hour: {value!r}")
    if isinstance(value, int):
        hour = value
    elif isinstance(value, str) and value.strip().isdigit():
        hour = int(value.strip())
    else:
        raise ValidationError(f"Invalid hour: {value!r}")
    if not MIN_HOUR <= hour <= MAX_HOUR:
        raise ValidationError(f"Hour must be between {MIN_HOUR} and {MAX_HOUR}, got {hour}")
    return hour


def parse_amount(value, field_name: str = "Amount") -> Decimal:
    """Turn user input into a Decimal; malformed input is a validation error."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} is not a valid number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} is not a valid number")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} is not a valid number")
    return amount


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
