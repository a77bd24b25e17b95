from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, store_operation
from ..realtime.feed import DELETE, UPSERT, ChangeEvent, InProcessChangeFeed
from ..realtime.notifier import ATTENDANCE_TABLE
from .model import ALL_HOURS, AttendanceRecord, HourEntry, SelectedSlots
from .repository import AttendanceRepository, SelectedSlotsRepository

_COLUMNS = "id, student_id, date, hourly_status, version"


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=str(r["id"]),
        student_id=str(r["student_id"]),
        date=r["date"],
        hourly_status=tuple(HourEntry.from_json(h) for h in load_json(r.get("hourly_status"), [])),
        version=int(r.get("version") or 0),
    )


def _status_json(record: AttendanceRecord) -> str:
    return dump_json([e.to_json() for e in record.hourly_status])


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection, feed: Optional[InProcessChangeFeed] = None):
        self._conn_factory = conn_factory
        self._feed = feed
        # Writes are serialized so feed order matches commit order.
        self._write_lock = threading.Lock()

    def _publish(self, kind: str, record: AttendanceRecord) -> None:
        if self._feed is None:
            return
        row = record.to_json()
        if kind == DELETE:
            self._feed.publish(ChangeEvent(table=ATTENDANCE_TABLE, kind=DELETE, old=row))
        else:
            self._feed.publish(ChangeEvent(table=ATTENDANCE_TABLE, kind=UPSERT, new=row))

    def fetch_for_date(self, on: date) -> Sequence[AttendanceRecord]:
        with store_operation("fetch attendance", f"date={on.isoformat()}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(f"SELECT {_COLUMNS} FROM daily_attendance WHERE date=%s", (on,))
                return [_to_record(r) for r in fetchall(cur)]

    def get_many(self, student_ids: Sequence[str], on: date) -> dict[str, AttendanceRecord]:
        ids = [str(s) for s in student_ids]
        if not ids:
            return {}
        placeholders = ",".join(["%s"] * len(ids))
        with store_operation("fetch attendance", f"date={on.isoformat()} students={len(ids)}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"SELECT {_COLUMNS} FROM daily_attendance WHERE date=%s AND student_id IN ({placeholders})",
                    (on, *ids),
                )
                return {str(r["student_id"]): _to_record(r) for r in fetchall(cur)}

    def upsert_batch(self, records: Sequence[AttendanceRecord]) -> Sequence[AttendanceRecord]:
        if not records:
            return []
        context = ", ".join(f"{r.student_id}@{r.date.isoformat()}" for r in records)
        stored: list[AttendanceRecord] = []
        with self._write_lock:
            with store_operation("save attendance", context):
                with db_cursor(self._conn_factory) as (_, cur):
                    for record in records:
                        cur.execute(
                            """
                            INSERT INTO daily_attendance(id, student_id, date, hourly_status, version)
                            VALUES(%s,%s,%s,%s,%s)
                            ON DUPLICATE KEY UPDATE hourly_status=VALUES(hourly_status), version=VALUES(version)
                            """,
                            (
                                record.record_id or str(uuid.uuid4()),
                                record.student_id,
                                record.date,
                                _status_json(record),
                                int(record.version),
                            ),
                        )
                        # On update the existing row keeps its id; read it back.
                        cur.execute(
                            f"SELECT {_COLUMNS} FROM daily_attendance WHERE student_id=%s AND date=%s",
                            (record.student_id, record.date),
                        )
                        stored.append(_to_record(fetchone(cur)))
            for record in stored:
                self._publish(UPSERT, record)
        return stored

    def delete_for_date(self, on: date) -> int:
        with self._write_lock:
            with store_operation("reset attendance", f"date={on.isoformat()}"):
                with db_cursor(self._conn_factory) as (_, cur):
                    cur.execute(f"SELECT {_COLUMNS} FROM daily_attendance WHERE date=%s", (on,))
                    removed = [_to_record(r) for r in fetchall(cur)]
                    cur.execute("DELETE FROM daily_attendance WHERE date=%s", (on,))
            for record in removed:
                self._publish(DELETE, record)
        return len(removed)

    def delete_hour_for_date(self, on: date, hour: int) -> int:
        updated: list[AttendanceRecord] = []
        removed: list[AttendanceRecord] = []
        with self._write_lock:
            with store_operation("reset attendance hour", f"date={on.isoformat()} hour={hour}"):
                with db_cursor(self._conn_factory) as (_, cur):
                    cur.execute(f"SELECT {_COLUMNS} FROM daily_attendance WHERE date=%s FOR UPDATE", (on,))
                    for record in (_to_record(r) for r in fetchall(cur)):
                        if record.entry_for(hour) is None:
                            continue
                        stripped = record.without_hour(hour)
                        if stripped.hourly_status:
                            stripped = replace(stripped, version=record.version + 1)
                            cur.execute(
                                "UPDATE daily_attendance SET hourly_status=%s, version=%s WHERE id=%s",
                                (_status_json(stripped), stripped.version, stripped.record_id),
                            )
                            updated.append(stripped)
                        else:
                            cur.execute("DELETE FROM daily_attendance WHERE id=%s", (record.record_id,))
                            removed.append(record)
            for record in updated:
                self._publish(UPSERT, record)
            for record in removed:
                self._publish(DELETE, record)
        return len(updated) + len(removed)

    def list_range(self, start: date, end: date) -> Sequence[AttendanceRecord]:
        with store_operation("fetch attendance range", f"{start.isoformat()}..{end.isoformat()}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"SELECT {_COLUMNS} FROM daily_attendance WHERE date BETWEEN %s AND %s ORDER BY date ASC",
                    (start, end),
                )
                return [_to_record(r) for r in fetchall(cur)]


def _to_slots(r: dict) -> SelectedSlots:
    hours = load_json(r.get("selected_hours"), None)
    return SelectedSlots(
        student_id=str(r["student_id"]),
        date=r["date"],
        selected_hours=tuple(int(h) for h in hours) if hours is not None else ALL_HOURS,
    )


class MySQLSelectedSlotsRepository(SelectedSlotsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_date(self, on: date) -> Sequence[SelectedSlots]:
        with store_operation("fetch selected slots", f"date={on.isoformat()}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute("SELECT student_id, date, selected_hours FROM selected_slots WHERE date=%s", (on,))
                return [_to_slots(r) for r in fetchall(cur)]

    def list_range(self, start: date, end: date) -> Sequence[SelectedSlots]:
        with store_operation("fetch selected slots", f"{start.isoformat()}..{end.isoformat()}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    "SELECT student_id, date, selected_hours FROM selected_slots WHERE date BETWEEN %s AND %s",
                    (start, end),
                )
                return [_to_slots(r) for r in fetchall(cur)]

    def upsert_batch(self, slots: Sequence[SelectedSlots]) -> None:
        if not slots:
            return
        with store_operation("save selected slots", f"rows={len(slots)}"):
            with db_cursor(self._conn_factory) as (_, cur):
                for s in slots:
                    cur.execute(
                        """
                        INSERT INTO selected_slots(student_id, date, selected_hours)
                        VALUES(%s,%s,%s)
                        ON DUPLICATE KEY UPDATE selected_hours=VALUES(selected_hours)
                        """,
                        (s.student_id, s.date, dump_json(list(s.selected_hours))),
                    )
