from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from ..common.validators import parse_amount, require_non_empty, round_money
from ..core.constants import DEFAULT_GST_RATE, LATE_FEE_REFERENCE
from ..core.enums import PaymentMethod
from ..core.exceptions import NotFoundError, ValidationError
from ..students.repository import StudentRepository
from .calculator import GracePeriod, calculate_grace_period, derive_due, fee_total
from .model import Fee, Payment
from .repository import FeeRepository

logger = logging.getLogger(__name__)

_ZERO = Decimal("0.00")


class FeeLedgerService:
    """Fee records, payments and the one-time late fee.

    Each ledger change is a single store transaction: a payment row is never
    committed without the matching aggregate update.
    """

    def __init__(
        self,
        fees: FeeRepository,
        students: Optional[StudentRepository] = None,
        *,
        gst_rate: Decimal = DEFAULT_GST_RATE,
        today: Callable[[], date] = date.today,
    ):
        self._fees = fees
        self._students = students
        self._gst_rate = Decimal(str(gst_rate))
        self._today = today

    def get_fee(self, fee_id: int) -> Fee:
        fee = self._fees.get(int(fee_id))
        if fee is None:
            raise NotFoundError(f"Fee record {fee_id} not found")
        return fee

    def list_fees(self, *, student_id: Optional[str] = None) -> list[Fee]:
        return list(self._fees.list_fees(student_id=student_id))

    def create_fee_record(
        self,
        student_id: str,
        base_amount,
        due_date: date,
        grace_month: int,
        grace_fee_amount,
        initial_payment=None,
        *,
        discount_percent=0,
    ) -> Fee:
        student_id = require_non_empty(student_id, "Student ID")
        base = parse_amount(base_amount, "Base amount")
        if base < 0:
            raise ValidationError("Base amount cannot be negative")
        discount = parse_amount(discount_percent, "Discount")
        if not 0 <= discount <= 100:
            raise ValidationError("Discount must be between 0 and 100 percent")
        grace_fee = round_money(parse_amount(grace_fee_amount, "Grace fee amount"))
        if grace_fee < 0:
            raise ValidationError("Grace fee amount cannot be negative")
        try:
            months = int(grace_month)
        except (TypeError, ValueError):
            raise ValidationError("Grace period must be a whole number of months")
        if months < 0:
            raise ValidationError("Grace period cannot be negative")
        paid = _ZERO
        if initial_payment not in (None, ""):
            paid = round_money(parse_amount(initial_payment, "Initial payment"))
            if paid < 0:
                raise ValidationError("Initial payment cannot be negative")

        if self._students is not None and self._students.get_by_id(student_id) is None:
            raise NotFoundError(f"Student {student_id} not found")

        total = fee_total(base, gst_rate=self._gst_rate, discount_percent=discount)
        first_payment = None
        if paid > 0:
            first_payment = Payment(
                amount=paid,
                date=self._today(),
                method=PaymentMethod.CASH,
                remaining_due_amount=derive_due(total, paid),
            )

        fee = self._fees.create(
            student_id=student_id,
            total_amount=total,
            paid_amount=paid,
            due_date=due_date,
            grace_month=months,
            grace_fee_amount=grace_fee,
            initial_payment=first_payment,
        )
        logger.info("Created fee %s for student %s (total %s, paid %s)", fee.fee_id, student_id, total, paid)
        return fee

    def add_payment(
        self,
        fee_id: int,
        *,
        amount,
        method: PaymentMethod | str,
        paid_on: Optional[date] = None,
        reference: Optional[str] = None,
    ) -> Fee:
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ValidationError(f"Unknown payment method: {method!r}")
        if method == PaymentMethod.SYSTEM:
            raise ValidationError("System payments cannot be entered manually")
        reference = (reference or "").strip() or None
        if method.requires_reference and not reference:
            raise ValidationError(f"Reference number is required for {method.value} payments")
        value = round_money(parse_amount(amount))
        if value <= 0:
            raise ValidationError("Amount must be greater than 0")

        fee = self.get_fee(fee_id)
        new_paid = round_money(fee.paid_amount + value)
        payment = Payment(
            amount=value,
            date=paid_on or self._today(),
            method=method,
            reference=reference,
            remaining_due_amount=derive_due(fee.total_amount, new_paid),
            fee_id=fee.fee_id,
        )
        updated = self._fees.record_payment(
            fee_id=fee.fee_id, payment=payment, expected_paid=fee.paid_amount, new_paid=new_paid
        )
        logger.info("Recorded %s payment of %s on fee %s (due %s)", method.value, value, fee.fee_id, updated.due_amount)
        return updated

    def grace_period(self, fee: Fee, *, today: Optional[date] = None) -> GracePeriod:
        return calculate_grace_period(fee.due_date, fee.grace_month, today or self._today())

    def apply_late_fee_if_due(self, fee_id: int, *, today: Optional[date] = None) -> Fee:
        """Add the grace fee once the grace period has passed. Safe to call repeatedly."""
        fee = self.get_fee(fee_id)
        if fee.late_fee_payments:
            return fee
        if not self.grace_period(fee, today=today).is_late:
            return fee
        if fee.grace_fee_amount <= 0:
            return fee

        new_total = round_money(fee.total_amount + fee.grace_fee_amount)
        sentinel = Payment(
            amount=fee.grace_fee_amount,
            date=today or self._today(),
            method=PaymentMethod.SYSTEM,
            reference=LATE_FEE_REFERENCE,
            remaining_due_amount=derive_due(new_total, fee.paid_amount),
            fee_id=fee.fee_id,
        )
        updated = self._fees.record_late_fee(
            fee_id=fee.fee_id, sentinel=sentinel, expected_total=fee.total_amount, new_total=new_total
        )
        logger.info("Applied late fee of %s to fee %s", fee.grace_fee_amount, fee.fee_id)
        return updated
