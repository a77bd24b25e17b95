from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional, Sequence

from ..common.validators import require_hour
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from ..students.repository import StudentRepository
from .model import AttendanceRecord, SelectedSlots
from .repository import AttendanceRepository, SelectedSlotsRepository
from .resolver import has_conflict, resolve
from .rules import validate_batch

logger = logging.getLogger(__name__)

WRITER_ROLES = (Role.ADMIN, Role.TEACHER)


class AttendanceService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        students: StudentRepository,
        slots: Optional[SelectedSlotsRepository] = None,
    ):
        self._attendance = attendance
        self._students = students
        self._slots = slots

    def fetch_for_date(self, on: date) -> list[AttendanceRecord]:
        """One record per active student; students without a stored row get an empty version-0 record."""
        students = self._students.list_active()
        stored = {r.student_id: r for r in self._attendance.fetch_for_date(on)}
        return [stored.get(s.student_id) or AttendanceRecord.empty(s.student_id, on) for s in students]

    def save_records(self, records: Iterable[AttendanceRecord], *, current_role: Role) -> list[AttendanceRecord]:
        """Validate, merge against the latest stored rows and upsert as one batch.

        Nothing is written if any record fails validation.
        """

        if current_role not in WRITER_ROLES:
            raise AuthorizationError("You are not allowed to mark attendance")

        candidates = [r for r in records if r.hourly_status]
        seen: set[tuple[str, date]] = set()
        for r in candidates:
            if r.key in seen:
                raise ValidationError(f"Duplicate attendance for student {r.student_id} on {r.date.isoformat()}")
            seen.add(r.key)
        validate_batch(candidates)
        if not candidates:
            return []

        by_date: dict[date, list[AttendanceRecord]] = defaultdict(list)
        for r in candidates:
            by_date[r.date].append(r)

        resolved: list[AttendanceRecord] = []
        for on, group in by_date.items():
            latest = self._attendance.get_many([r.student_id for r in group], on)
            for local in group:
                remote = latest.get(local.student_id)
                if has_conflict(local, remote):
                    logger.debug(
                        "Merging attendance for student %s on %s (local v%s, remote v%s)",
                        local.student_id, on, local.version, remote.version,
                    )
                resolved.append(resolve(local, remote))

        # A merge can combine hours from both sides, so re-check what would be written.
        validate_batch(resolved)
        stored = self._attendance.upsert_batch(resolved)
        logger.info("Saved attendance for %d student(s)", len(stored))
        return list(stored)

    def reset_date(self, on: date, *, current_role: Role) -> int:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can reset attendance")
        count = self._attendance.delete_for_date(on)
        logger.info("Reset attendance for %s (%d record(s))", on.isoformat(), count)
        return count

    def reset_hour(self, on: date, hour: int, *, current_role: Role) -> int:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can reset attendance")
        hour = require_hour(hour)
        count = self._attendance.delete_hour_for_date(on, hour)
        logger.info("Reset hour %d for %s (%d record(s))", hour, on.isoformat(), count)
        return count

    def get_selected_slots(self, on: date) -> list[SelectedSlots]:
        if not self._slots:
            return []
        return list(self._slots.list_for_date(on))

    def update_selected_slots(self, slots: Sequence[SelectedSlots], *, current_role: Role) -> None:
        if current_role not in WRITER_ROLES:
            raise AuthorizationError("You are not allowed to change selected slots")
        if not self._slots:
            raise ValidationError("Selected slots are not available")
        cleaned = []
        for s in slots:
            hours = tuple(sorted({require_hour(h) for h in s.selected_hours}))
            cleaned.append(SelectedSlots(student_id=s.student_id, date=s.date, selected_hours=hours))
        self._slots.upsert_batch(cleaned)
