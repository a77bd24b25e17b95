from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from ..common.datetime_utils import format_timestamp, parse_timestamp
from ..core.constants import MAX_HOUR, MIN_HOUR
from ..core.enums import AttendanceStatus

ALL_HOURS: tuple[int, ...] = tuple(range(MIN_HOUR, MAX_HOUR + 1))


@dataclass(frozen=True)
class HourEntry:
    """Status of one hour slot, stamped with the time it was marked."""

    hour: int
    status: AttendanceStatus
    time: Optional[datetime] = None
    reason: Optional[str] = None

    @classmethod
    def mark(cls, hour: int, status: AttendanceStatus, *, time: datetime, reason: Optional[str] = None) -> "HourEntry":
        reason = (reason or "").strip() or None
        return cls(hour=hour, status=status, time=time, reason=reason if status.needs_reason else None)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "HourEntry":
        return cls(
            hour=int(data["hour"]),
            status=AttendanceStatus(data["status"]),
            time=parse_timestamp(data.get("time")),
            reason=data.get("reason") or None,
        )

    def to_json(self) -> dict:
        return {
            "hour": self.hour,
            "status": self.status.value,
            "time": format_timestamp(self.time),
            "reason": self.reason,
        }


def _sorted_unique(entries: Iterable[HourEntry]) -> tuple[HourEntry, ...]:
    by_hour: dict[int, HourEntry] = {}
    for e in entries:
        by_hour[e.hour] = e
    return tuple(by_hour[h] for h in sorted(by_hour))


@dataclass(frozen=True)
class AttendanceRecord:
    """One student's attendance for one calendar date (the partition key)."""

    student_id: str
    date: date
    hourly_status: tuple[HourEntry, ...] = ()
    version: int = 0
    record_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "hourly_status", _sorted_unique(self.hourly_status))

    @property
    def key(self) -> tuple[str, date]:
        return (self.student_id, self.date)

    @property
    def hours(self) -> tuple[int, ...]:
        return tuple(e.hour for e in self.hourly_status)

    def entry_for(self, hour: int) -> Optional[HourEntry]:
        for e in self.hourly_status:
            if e.hour == hour:
                return e
        return None

    def with_entry(self, entry: HourEntry) -> "AttendanceRecord":
        others = [e for e in self.hourly_status if e.hour != entry.hour]
        return replace(self, hourly_status=tuple(others) + (entry,))

    def without_hour(self, hour: int) -> "AttendanceRecord":
        return replace(self, hourly_status=tuple(e for e in self.hourly_status if e.hour != hour))

    def count_status(self, status: AttendanceStatus) -> int:
        return sum(1 for e in self.hourly_status if e.status == status)

    @classmethod
    def empty(cls, student_id: str, on: date) -> "AttendanceRecord":
        return cls(student_id=str(student_id), date=on)

    @classmethod
    def from_json(cls, data: Mapping[str, Any], *, on: Optional[date] = None) -> "AttendanceRecord":
        raw_date = data.get("date")
        if isinstance(raw_date, str):
            raw_date = date.fromisoformat(raw_date)
        return cls(
            record_id=data.get("id") or None,
            student_id=str(data["student_id"]),
            date=raw_date or on,
            hourly_status=tuple(HourEntry.from_json(h) for h in (data.get("hourly_status") or [])),
            version=int(data.get("version") or 0),
        )

    def to_json(self) -> dict:
        return {
            "id": self.record_id,
            "student_id": self.student_id,
            "date": self.date.isoformat(),
            "hourly_status": [e.to_json() for e in self.hourly_status],
            "version": self.version,
        }


@dataclass(frozen=True)
class SelectedSlots:
    """Hours of one (student, date) that count toward monthly statistics."""

    student_id: str
    date: date
    selected_hours: tuple[int, ...] = field(default=ALL_HOURS)

    def counts(self, hour: int) -> bool:
        return hour in self.selected_hours


@dataclass(frozen=True)
class MonthlyAttendance:
    student_id: str
    month: int
    year: int
    total_present: int
    total_absent: int
    total_late: int
    total_leave: int
    total_medical: int
    total_hours: int
    attendance_percentage: int
