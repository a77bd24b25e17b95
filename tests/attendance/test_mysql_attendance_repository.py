from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from src.campus_admin.campus_admin.attendance.model import AttendanceRecord, HourEntry
from src.campus_admin.campus_admin.attendance.mysql_attendance_repository import MySQLAttendanceRepository
from src.campus_admin.campus_admin.core.enums import AttendanceStatus
from src.campus_admin.campus_admin.core.exceptions import StoreError
from src.campus_admin.campus_admin.database.mysql_base import dump_json
from src.campus_admin.campus_admin.realtime.feed import DELETE, UPSERT, InProcessChangeFeed
from src.campus_admin.campus_admin.realtime.notifier import ATTENDANCE_TABLE
from tests.helpers import ScriptedConnectionFactory

DAY = date(2026, 3, 2)
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _row(record_id, student_id, hours, version):
    entries = [HourEntry(hour=h, status=AttendanceStatus.PRESENT, time=T0).to_json() for h in hours]
    return {"id": record_id, "student_id": student_id, "date": DAY, "hourly_status": dump_json(entries), "version": version}


@pytest.fixture
def events():
    feed = InProcessChangeFeed()
    received = []
    feed.subscribe(ATTENDANCE_TABLE, lambda row: True, received.append)
    return feed, received


def test_upsert_returns_stored_id_and_publishes_after_commit(events):
    feed, received = events
    factory = ScriptedConnectionFactory([_row("row-existing", "s1", [1, 2], 2)])
    repo = MySQLAttendanceRepository(factory, feed)
    local = AttendanceRecord(
        student_id="s1",
        date=DAY,
        hourly_status=(
            HourEntry(hour=1, status=AttendanceStatus.PRESENT, time=T0),
            HourEntry(hour=2, status=AttendanceStatus.PRESENT, time=T0),
        ),
        version=2,
    )

    stored = repo.upsert_batch([local])

    assert stored[0].record_id == "row-existing"
    assert stored[0].hours == (1, 2)
    (insert_sql, insert_params), = factory.cursor.statements("INSERT INTO daily_attendance")
    assert "ON DUPLICATE KEY UPDATE" in insert_sql
    assert insert_params[1:3] == ("s1", DAY)
    assert insert_params[4] == 2
    assert factory.last.committed and factory.last.closed
    assert [(e.kind, e.new["id"], e.new["version"]) for e in received] == [(UPSERT, "row-existing", 2)]


def test_delete_hour_bumps_version_and_removes_emptied_rows(events):
    feed, received = events
    factory = ScriptedConnectionFactory(
        [[_row("r1", "s1", [1, 2], 2), _row("r2", "s2", [1], 1), _row("r3", "s3", [3], 4)]]
    )
    repo = MySQLAttendanceRepository(factory, feed)

    touched = repo.delete_hour_for_date(DAY, 1)

    assert touched == 2
    assert factory.cursor.statements("SELECT")[0][0].endswith("FOR UPDATE")
    (update_sql, update_params), = factory.cursor.statements("UPDATE daily_attendance")
    assert update_params[1:] == (3, "r1")
    assert '"hour":1' not in update_params[0]
    assert factory.cursor.statements("DELETE FROM daily_attendance") == [
        ("DELETE FROM daily_attendance WHERE id=%s", ("r2",))
    ]
    assert [(e.kind, e.row["id"], e.row["version"]) for e in received] == [(UPSERT, "r1", 3), (DELETE, "r2", 1)]
    assert received[1].new is None


def test_reset_date_publishes_one_delete_per_removed_row(events):
    feed, received = events
    factory = ScriptedConnectionFactory([[_row("r1", "s1", [1], 2), _row("r2", "s2", [4], 1)]])
    repo = MySQLAttendanceRepository(factory, feed)

    assert repo.delete_for_date(DAY) == 2

    assert factory.cursor.statements("DELETE") == [("DELETE FROM daily_attendance WHERE date=%s", (DAY,))]
    assert [(e.kind, e.old["student_id"]) for e in received] == [(DELETE, "s1"), (DELETE, "s2")]


def test_driver_error_rolls_back_and_publishes_nothing(events):
    feed, received = events
    factory = ScriptedConnectionFactory([], fail_on="INSERT INTO daily_attendance")
    repo = MySQLAttendanceRepository(factory, feed)

    with pytest.raises(StoreError) as err:
        repo.upsert_batch([AttendanceRecord(student_id="s1", date=DAY, version=1)])

    assert err.value.operation == "save attendance"
    assert "s1@2026-03-02" in str(err.value)
    assert factory.last.rolled_back and not factory.last.committed
    assert factory.last.closed
    assert received == []


def test_get_many_skips_query_for_empty_id_list():
    factory = ScriptedConnectionFactory([])
    repo = MySQLAttendanceRepository(factory)

    assert repo.get_many([], DAY) == {}
    assert factory.connections == []
