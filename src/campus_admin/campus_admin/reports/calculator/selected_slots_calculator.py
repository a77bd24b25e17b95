from __future__ import annotations

from typing import Sequence

from ...attendance.model import ALL_HOURS, AttendanceRecord, MonthlyAttendance, SelectedSlots
from ...core.enums import AttendanceStatus
from .base import MonthlyAttendanceCalculator


class SelectedSlotsCalculator(MonthlyAttendanceCalculator):
    """Count only the hours selected for each day (all 15 when nothing was selected)."""

    def summarize(
        self,
        *,
        student_id: str,
        month: int,
        year: int,
        days: Sequence[AttendanceRecord],
        slots: Sequence[SelectedSlots],
    ) -> MonthlyAttendance:
        selected = {s.date: set(s.selected_hours) for s in slots if s.student_id == student_id}
        totals = {status: 0 for status in AttendanceStatus}
        total_hours = 0

        for day in days:
            hours = selected.get(day.date, set(ALL_HOURS))
            for entry in day.hourly_status:
                if entry.hour not in hours:
                    continue
                total_hours += 1
                totals[entry.status] += 1

        present = totals[AttendanceStatus.PRESENT]
        # Half-up rounding of present / hours * 100.
        percentage = (present * 200 + total_hours) // (2 * total_hours) if total_hours else 0
        return MonthlyAttendance(
            student_id=student_id,
            month=month,
            year=year,
            total_present=present,
            total_absent=totals[AttendanceStatus.ABSENT],
            total_late=totals[AttendanceStatus.LATE],
            total_leave=totals[AttendanceStatus.LEAVE],
            total_medical=totals[AttendanceStatus.MEDICAL],
            total_hours=total_hours,
            attendance_percentage=percentage,
        )
