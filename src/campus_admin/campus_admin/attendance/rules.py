from __future__ import annotations

from typing import Iterable

from ..common.validators import require_hour
from ..core.constants import MAX_PRESENT_HOURS
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from .model import AttendanceRecord


def present_count(record: AttendanceRecord) -> int:
    return record.count_status(AttendanceStatus.PRESENT)


def validate_attendance_count(record: AttendanceRecord) -> bool:
    return present_count(record) <= MAX_PRESENT_HOURS


def validate_record(record: AttendanceRecord) -> None:
    for entry in record.hourly_status:
        require_hour(entry.hour)
    if not validate_attendance_count(record):
        raise ValidationError(
            f"Cannot mark more than {MAX_PRESENT_HOURS} lectures as present "
            f"for student {record.student_id} on {record.date.isoformat()}"
        )


def validate_batch(records: Iterable[AttendanceRecord]) -> None:
    """Validate every record before anything is written; the first violation aborts the batch."""
    for record in records:
        validate_record(record)
