from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ...attendance.model import AttendanceRecord, MonthlyAttendance, SelectedSlots


class MonthlyAttendanceCalculator(ABC):
    """Calculator interface (Strategy Pattern for monthly attendance statistics)."""

    @abstractmethod
    def summarize(
        self,
        *,
        student_id: str,
        month: int,
        year: int,
        days: Sequence[AttendanceRecord],
        slots: Sequence[SelectedSlots],
    ) -> MonthlyAttendance:
        raise NotImplementedError
