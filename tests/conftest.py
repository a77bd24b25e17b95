from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
from werkzeug.security import generate_password_hash

from src.campus_admin.campus_admin.attendance.model import AttendanceRecord, SelectedSlots
from src.campus_admin.campus_admin.container import wire
from src.campus_admin.campus_admin.core.enums import Role
from src.campus_admin.campus_admin.core.exceptions import StoreError
from src.campus_admin.campus_admin.fees.model import Fee, Payment
from src.campus_admin.campus_admin.realtime.feed import DELETE, UPSERT, ChangeEvent, InProcessChangeFeed
from src.campus_admin.campus_admin.realtime.notifier import ATTENDANCE_TABLE
from src.campus_admin.campus_admin.students.model import Student
from src.campus_admin.campus_admin.users.model import User

DAY = date(2026, 3, 2)


class InMemoryStudents:
    def __init__(self, students):
        self._students = list(students)

    def list_active(self):
        return [s for s in self._students if s.status == "active"]

    def get_by_id(self, student_id):
        return next((s for s in self._students if s.student_id == str(student_id)), None)


class InMemoryAttendance:
    """Row store double that publishes to a change feed like the MySQL store."""

    def __init__(self, feed: Optional[InProcessChangeFeed] = None):
        self.rows: dict[tuple[str, date], AttendanceRecord] = {}
        self.feed = feed
        self.upsert_calls = 0
        self.fail_next_upsert = False
        self._ids = itertools.count(1)

    def _publish(self, kind, record):
        if self.feed is None:
            return
        if kind == DELETE:
            self.feed.publish(ChangeEvent(table=ATTENDANCE_TABLE, kind=DELETE, old=record.to_json()))
        else:
            self.feed.publish(ChangeEvent(table=ATTENDANCE_TABLE, kind=UPSERT, new=record.to_json()))

    def put(self, record: AttendanceRecord) -> AttendanceRecord:
        """Seed a row directly, bypassing the feed."""
        stored = replace(record, record_id=record.record_id or f"rec-{next(self._ids)}")
        self.rows[stored.key] = stored
        return stored

    def fetch_for_date(self, on):
        return [r for (sid, d), r in self.rows.items() if d == on]

    def get(self, student_id, on):
        return self.rows.get((str(student_id), on))

    def get_many(self, student_ids, on):
        return {sid: self.rows[(sid, on)] for sid in student_ids if (sid, on) in self.rows}

    def upsert_batch(self, records):
        self.upsert_calls += 1
        if self.fail_next_upsert:
            self.fail_next_upsert = False
            raise StoreError("save attendance", "simulated outage")
        stored = []
        for record in records:
            existing = self.rows.get(record.key)
            record_id = existing.record_id if existing else (record.record_id or f"rec-{next(self._ids)}")
            row = replace(record, record_id=record_id)
            self.rows[row.key] = row
            stored.append(row)
        for row in stored:
            self._publish(UPSERT, row)
        return stored

    def delete_for_date(self, on):
        removed = [r for r in self.rows.values() if r.date == on]
        for r in removed:
            del self.rows[r.key]
            self._publish(DELETE, r)
        return len(removed)

    def delete_hour_for_date(self, on, hour):
        touched = 0
        for record in [r for r in self.rows.values() if r.date == on]:
            if record.entry_for(hour) is None:
                continue
            touched += 1
            stripped = record.without_hour(hour)
            if stripped.hourly_status:
                stripped = replace(stripped, version=record.version + 1)
                self.rows[record.key] = stripped
                self._publish(UPSERT, stripped)
            else:
                del self.rows[record.key]
                self._publish(DELETE, record)
        return touched

    def list_range(self, start, end):
        return sorted((r for r in self.rows.values() if start <= r.date <= end), key=lambda r: r.date)


class InMemorySlots:
    def __init__(self):
        self.rows: dict[tuple[str, date], SelectedSlots] = {}

    def list_for_date(self, on):
        return [s for (sid, d), s in self.rows.items() if d == on]

    def list_range(self, start, end):
        return [s for (sid, d), s in self.rows.items() if start <= d <= end]

    def upsert_batch(self, slots):
        for s in slots:
            self.rows[(s.student_id, s.date)] = s


class InMemoryFees:
    """Fee store double. ``calls`` records every store method invoked."""

    def __init__(self):
        self.fees: dict[int, Fee] = {}
        self.calls: list[str] = []
        self._fee_ids = itertools.count(1)
        self._payment_ids = itertools.count(1)

    def _with_payment(self, fee: Fee, payment: Payment, **changes) -> Fee:
        stored = replace(payment, payment_id=next(self._payment_ids), fee_id=fee.fee_id)
        updated = replace(fee, payments=fee.payments + (stored,), **changes)
        self.fees[fee.fee_id] = updated
        return updated

    def get(self, fee_id):
        self.calls.append("get")
        return self.fees.get(int(fee_id))

    def list_fees(self, *, student_id=None):
        self.calls.append("list_fees")
        return [f for f in self.fees.values() if student_id is None or f.student_id == student_id]

    def create(self, *, student_id, total_amount, paid_amount, due_date, grace_month, grace_fee_amount, initial_payment=None):
        self.calls.append("create")
        fee = Fee(
            fee_id=next(self._fee_ids),
            student_id=student_id,
            total_amount=total_amount,
            paid_amount=paid_amount,
            due_date=due_date,
            grace_month=grace_month,
            grace_fee_amount=grace_fee_amount,
        )
        self.fees[fee.fee_id] = fee
        if initial_payment is not None:
            fee = self._with_payment(fee, initial_payment)
        return fee

    def record_payment(self, *, fee_id, payment, expected_paid, new_paid):
        self.calls.append("record_payment")
        fee = self.fees[int(fee_id)]
        if fee.paid_amount != expected_paid:
            raise StoreError("record payment", f"fee={fee_id}: fee changed since it was read, reload and retry")
        return self._with_payment(fee, payment, paid_amount=new_paid)

    def record_late_fee(self, *, fee_id, sentinel, expected_total, new_total):
        self.calls.append("record_late_fee")
        fee = self.fees[int(fee_id)]
        if fee.late_fee_payments:
            return fee
        if fee.total_amount != expected_total:
            raise StoreError("apply late fee", f"fee={fee_id}: fee changed since it was read, reload and retry")
        return self._with_payment(fee, sentinel, total_amount=new_total, is_late_fee_applied=True)


class InMemoryUsers:
    def __init__(self, users):
        self._by_name = {u.username: u for u in users}

    def get_by_username(self, username):
        return self._by_name.get(username)

    def get_by_id(self, user_id):
        return next((u for u in self._by_name.values() if u.user_id == user_id), None)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def day() -> date:
    return DAY


@pytest.fixture
def students():
    return InMemoryStudents(
        [
            Student(student_id="s1", name="Asha Menon", roll_no="BCA-001"),
            Student(student_id="s2", name="Rahul Nair", roll_no="BCA-002"),
            Student(student_id="s3", name="Kiran Das", roll_no="BBA-002", status="alumni"),
        ]
    )


@pytest.fixture
def feed():
    return InProcessChangeFeed()


@pytest.fixture
def attendance_store(feed):
    return InMemoryAttendance(feed)


@pytest.fixture
def slots_store():
    return InMemorySlots()


@pytest.fixture
def fee_store():
    return InMemoryFees()


@pytest.fixture
def users():
    return InMemoryUsers(
        [
            User(1, "Admin Demo", "admin", generate_password_hash("admin123"), Role.ADMIN),
            User(2, "Teacher Demo", "teacher", generate_password_hash("teacher123"), Role.TEACHER),
            User(3, "Former Teacher", "former", generate_password_hash("former123"), Role.TEACHER, is_active=False),
        ]
    )


@pytest.fixture
def container(feed, users, students, attendance_store, slots_store, fee_store):
    return wire(
        feed=feed,
        users_repo=users,
        students_repo=students,
        attendance_repo=attendance_store,
        slots_repo=slots_store,
        fees_repo=fee_store,
        gst_rate=Decimal("0.09"),
    )


@pytest.fixture
def app(monkeypatch, container):
    monkeypatch.setenv("APP_ENV", "testing")
    from src.campus_admin.campus_admin.main import create_app

    return create_app(container=container)


@pytest.fixture
def client(app):
    return app.test_client()

