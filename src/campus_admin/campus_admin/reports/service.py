from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date
from typing import Optional

from ..attendance.model import MonthlyAttendance
from ..attendance.repository import AttendanceRepository, SelectedSlotsRepository
from ..core.exceptions import ValidationError
from ..students.repository import StudentRepository
from .calculator.base import MonthlyAttendanceCalculator
from .calculator.selected_slots_calculator import SelectedSlotsCalculator


class MonthlyReportService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        students: StudentRepository,
        slots: Optional[SelectedSlotsRepository] = None,
        *,
        calculator: Optional[MonthlyAttendanceCalculator] = None,
    ):
        self._attendance = attendance
        self._students = students
        self._slots = slots
        self._calculator = calculator or SelectedSlotsCalculator()

    def monthly_attendance(self, *, month: int, year: int) -> list[MonthlyAttendance]:
        if not 1 <= int(month) <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if not 1 <= int(year) <= 9999:
            raise ValidationError("Year must be between 1 and 9999")
        start = date(int(year), int(month), 1)
        end = date(int(year), int(month), calendar.monthrange(int(year), int(month))[1])

        by_student = defaultdict(list)
        for record in self._attendance.list_range(start, end):
            by_student[record.student_id].append(record)
        slots = list(self._slots.list_range(start, end)) if self._slots else []

        return [
            self._calculator.summarize(
                student_id=s.student_id,
                month=int(month),
                year=int(year),
                days=by_student.get(s.student_id, []),
                slots=slots,
            )
            for s in self._students.list_active()
        ]
