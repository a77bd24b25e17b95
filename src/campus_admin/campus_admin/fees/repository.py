from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from .model import Fee, Payment


class FeeRepository(Protocol):
    def get(self, fee_id: int) -> Optional[Fee]:
        """Fee with its payments, oldest first."""

        raise NotImplementedError

    def list_fees(self, *, student_id: Optional[str] = None) -> Sequence[Fee]:
        raise NotImplementedError

    def create(
        self,
        *,
        student_id: str,
        total_amount: Decimal,
        paid_amount: Decimal,
        due_date: date,
        grace_month: int,
        grace_fee_amount: Decimal,
        initial_payment: Optional[Payment] = None,
    ) -> Fee:
        """Insert the fee and, when given, its first payment in one transaction."""

        raise NotImplementedError

    def record_payment(self, *, fee_id: int, payment: Payment, expected_paid: Decimal, new_paid: Decimal) -> Fee:
        """Insert ``payment`` and move paid_amount from ``expected_paid`` to ``new_paid`` atomically.

        Raises StoreError if paid_amount no longer equals ``expected_paid``.
        """

        raise NotImplementedError

    def record_late_fee(self, *, fee_id: int, sentinel: Payment, expected_total: Decimal, new_total: Decimal) -> Fee:
        """Insert the sentinel payment, raise total_amount and flag the fee atomically."""

        raise NotImplementedError
