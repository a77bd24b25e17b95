from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role, resolved once at login and passed explicitly afterwards."""

    ADMIN = "admin"
    TEACHER = "teacher"


class AttendanceStatus(str, Enum):
    """Status of one hour slot."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    LEAVE = "leave"
    IN = "in"
    OUT = "out"
    EXAM = "exam"
    MEDICAL = "medical"

    @property
    def needs_reason(self) -> bool:
        return self in (AttendanceStatus.LEAVE, AttendanceStatus.MEDICAL)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"


class FeeStatus(str, Enum):
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    UNPAID = "unpaid"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"
    CHECK = "check"
    SYSTEM = "system"

    @property
    def requires_reference(self) -> bool:
        return self in (PaymentMethod.BANK_TRANSFER, PaymentMethod.ONLINE, PaymentMethod.CHECK)
