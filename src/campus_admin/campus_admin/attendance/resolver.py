"""Field-level merge of concurrently edited attendance records.

``resolve`` is pure: it never touches the store, so the whole ordering
policy for a (student, date) key can be tested in isolation.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from .model import AttendanceRecord, HourEntry

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _stamp(entry: HourEntry) -> datetime:
    return entry.time or _EPOCH


def _pick(local: Optional[HourEntry], remote: Optional[HourEntry]) -> HourEntry:
    if remote is None:
        return local
    if local is None:
        return remote
    # Strictly newer remote wins; ties stay with the writer.
    return remote if _stamp(remote) > _stamp(local) else local


def resolve(local: AttendanceRecord, remote: Optional[AttendanceRecord]) -> AttendanceRecord:
    """Reconcile ``local`` against the latest stored ``remote`` for the same key.

    ``local.version`` is the version the writer started editing from. A
    missing remote counts as version 0 with no hours.
    """

    if remote is None:
        remote = AttendanceRecord.empty(local.student_id, local.date)

    record_id = local.record_id or remote.record_id

    if remote.version <= local.version:
        return replace(local, record_id=record_id, version=local.version + 1)

    local_by_hour = {e.hour: e for e in local.hourly_status}
    remote_by_hour = {e.hour: e for e in remote.hourly_status}
    merged = tuple(
        _pick(local_by_hour.get(hour), remote_by_hour.get(hour))
        for hour in sorted(set(local_by_hour) | set(remote_by_hour))
    )
    return replace(local, record_id=record_id, hourly_status=merged, version=remote.version + 1)


def has_conflict(local: AttendanceRecord, remote: Optional[AttendanceRecord]) -> bool:
    return remote is not None and remote.version > local.version
