from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..core.constants import LATE_FEE_REFERENCE
from ..core.enums import FeeStatus, PaymentMethod
from .calculator import derive_due, derive_status


@dataclass(frozen=True)
class Payment:
    amount: Decimal
    date: date
    method: PaymentMethod
    reference: Optional[str] = None
    remaining_due_amount: Decimal = Decimal("0.00")
    payment_id: Optional[int] = None
    fee_id: Optional[int] = None

    @property
    def is_late_fee(self) -> bool:
        return self.method == PaymentMethod.SYSTEM and self.reference == LATE_FEE_REFERENCE

    @property
    def kind(self) -> str:
        return "grace_fee" if self.is_late_fee else "regular"

    def to_json(self) -> dict:
        return {
            "id": self.payment_id,
            "fee_id": self.fee_id,
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "method": self.method.value,
            "reference": self.reference or "",
            "type": self.kind,
            "remaining_due_amount": str(self.remaining_due_amount),
        }


@dataclass(frozen=True)
class Fee:
    """Fee ledger for one student. Due amount and status are always derived."""

    fee_id: Optional[int]
    student_id: str
    total_amount: Decimal
    paid_amount: Decimal
    due_date: date
    grace_month: int = 0
    grace_fee_amount: Decimal = Decimal("0.00")
    is_late_fee_applied: bool = False
    payments: tuple[Payment, ...] = ()

    @property
    def due_amount(self) -> Decimal:
        return derive_due(self.total_amount, self.paid_amount)

    @property
    def status(self) -> FeeStatus:
        return derive_status(self.total_amount, self.paid_amount)

    @property
    def late_fee_payments(self) -> tuple[Payment, ...]:
        return tuple(p for p in self.payments if p.is_late_fee)

    def to_json(self) -> dict:
        return {
            "id": self.fee_id,
            "student_id": self.student_id,
            "total_amount": str(self.total_amount),
            "paid_amount": str(self.paid_amount),
            "due_amount": str(self.due_amount),
            "due_date": self.due_date.isoformat(),
            "status": self.status.value,
            "grace_month": self.grace_month,
            "grace_fee_amount": str(self.grace_fee_amount),
            "is_late_fee_applied": self.is_late_fee_applied,
            "payments": [p.to_json() for p in self.payments],
        }
