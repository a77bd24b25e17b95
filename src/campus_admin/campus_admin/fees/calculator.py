"""Money arithmetic for the fee ledger.

Every amount is a Decimal rounded half-up to cents at the point it is
computed; percentages are applied before the final rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ..common.datetime_utils import add_months
from ..common.validators import round_money
from ..core.constants import DEFAULT_GST_RATE
from ..core.enums import FeeStatus

_ZERO = Decimal("0.00")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class GSTBreakdown:
    base_amount: Decimal
    gst_amount: Decimal
    total_with_gst: Decimal
    gst_rate: Decimal


@dataclass(frozen=True)
class GracePeriod:
    grace_until: date
    is_late: bool


def gst_components(base_amount: Decimal, gst_rate: Decimal = DEFAULT_GST_RATE) -> GSTBreakdown:
    base = Decimal(base_amount)
    gst = base * Decimal(gst_rate)
    return GSTBreakdown(
        base_amount=round_money(base),
        gst_amount=round_money(gst),
        total_with_gst=round_money(base + gst),
        gst_rate=Decimal(gst_rate),
    )


def fee_total(base_amount: Decimal, *, gst_rate: Decimal = DEFAULT_GST_RATE, discount_percent: Decimal = _ZERO) -> Decimal:
    """GST-inclusive total after an optional percentage discount, rounded once at the end."""
    discounted = Decimal(base_amount) * (1 - Decimal(discount_percent) / _HUNDRED)
    return round_money(discounted * (1 + Decimal(gst_rate)))


def derive_due(total_amount: Decimal, paid_amount: Decimal) -> Decimal:
    return max(round_money(Decimal(total_amount) - Decimal(paid_amount)), _ZERO)


def derive_status(total_amount: Decimal, paid_amount: Decimal) -> FeeStatus:
    if derive_due(total_amount, paid_amount) == _ZERO:
        return FeeStatus.PAID
    if Decimal(paid_amount) > _ZERO:
        return FeeStatus.PARTIALLY_PAID
    return FeeStatus.UNPAID


def calculate_grace_period(due_date: date, grace_month: int, today: date) -> GracePeriod:
    grace_until = add_months(due_date, max(int(grace_month or 0), 0))
    return GracePeriod(grace_until=grace_until, is_late=today > grace_until)
