from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.campus_admin.campus_admin.attendance.model import AttendanceRecord, HourEntry, SelectedSlots
from src.campus_admin.campus_admin.attendance.service import AttendanceService
from src.campus_admin.campus_admin.core.enums import AttendanceStatus, Role
from src.campus_admin.campus_admin.core.exceptions import AuthorizationError, ValidationError

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _present(student_id, day, hours, version=0):
    return AttendanceRecord(
        student_id=student_id,
        date=day,
        hourly_status=tuple(HourEntry(hour=h, status=AttendanceStatus.PRESENT, time=T0) for h in hours),
        version=version,
    )


@pytest.fixture
def service(attendance_store, students, slots_store):
    return AttendanceService(attendance_store, students, slots_store)


def test_fetch_for_date_fills_missing_active_students(service, attendance_store, day):
    attendance_store.put(_present("s1", day, [1, 2], version=2))

    records = {r.student_id: r for r in service.fetch_for_date(day)}

    assert set(records) == {"s1", "s2"}  # alumni s3 is not listed
    assert records["s1"].version == 2
    assert records["s2"].version == 0 and records["s2"].hourly_status == ()


def test_save_rejects_whole_batch_when_one_record_exceeds_present_cap(service, attendance_store, day):
    ok = _present("s1", day, range(1, 4))
    too_many = _present("s2", day, range(1, 14))

    with pytest.raises(ValidationError, match="more than 12"):
        service.save_records([ok, too_many], current_role=Role.TEACHER)

    assert attendance_store.upsert_calls == 0
    assert attendance_store.rows == {}


def test_twelve_present_hours_is_allowed(service, attendance_store, day):
    saved = service.save_records([_present("s1", day, range(1, 13))], current_role=Role.TEACHER)

    assert saved[0].count_status(AttendanceStatus.PRESENT) == 12
    assert saved[0].version == 1


def test_merge_that_would_exceed_present_cap_is_rejected(service, attendance_store, day):
    stored = attendance_store.put(_present("s1", day, [13, 14, 15], version=1))
    local = _present("s1", day, range(1, 13))
    other = _present("s2", day, [1])

    with pytest.raises(ValidationError, match="more than 12 lectures as present for student s1"):
        service.save_records([other, local], current_role=Role.TEACHER)

    assert attendance_store.upsert_calls == 0
    assert attendance_store.get("s1", day) == stored
    assert attendance_store.get("s2", day) is None


def test_save_merges_against_newer_stored_row(service, attendance_store, day):
    attendance_store.put(
        AttendanceRecord(
            student_id="s1",
            date=day,
            hourly_status=(HourEntry(hour=2, status=AttendanceStatus.ABSENT, time=T0),),
            version=3,
        )
    )

    saved = service.save_records([_present("s1", day, [1], version=1)], current_role=Role.TEACHER)

    assert saved[0].hours == (1, 2)
    assert saved[0].version == 4


def test_records_without_hours_are_not_written(service, attendance_store, day):
    assert service.save_records([AttendanceRecord.empty("s1", day)], current_role=Role.ADMIN) == []
    assert attendance_store.upsert_calls == 0


def test_duplicate_keys_in_one_batch_are_rejected(service, day):
    with pytest.raises(ValidationError, match="Duplicate"):
        service.save_records([_present("s1", day, [1]), _present("s1", day, [2])], current_role=Role.TEACHER)


def test_reset_requires_admin(service, attendance_store, day):
    attendance_store.put(_present("s1", day, [1, 2]))

    with pytest.raises(AuthorizationError):
        service.reset_date(day, current_role=Role.TEACHER)
    with pytest.raises(AuthorizationError):
        service.reset_hour(day, 1, current_role=Role.TEACHER)

    assert service.reset_date(day, current_role=Role.ADMIN) == 1
    assert attendance_store.rows == {}


def test_reset_hour_strips_hour_and_bumps_version(service, attendance_store, day):
    attendance_store.put(_present("s1", day, [1, 2], version=2))
    attendance_store.put(_present("s2", day, [1], version=1))

    assert service.reset_hour(day, 1, current_role=Role.ADMIN) == 2

    s1 = attendance_store.get("s1", day)
    assert s1.hours == (2,) and s1.version == 3
    assert attendance_store.get("s2", day) is None


def test_reset_hour_validates_range(service, day):
    with pytest.raises(ValidationError):
        service.reset_hour(day, 16, current_role=Role.ADMIN)


def test_selected_slots_are_cleaned_before_storing(service, slots_store, day):
    service.update_selected_slots(
        [SelectedSlots(student_id="s1", date=day, selected_hours=(3, 1, 3))],
        current_role=Role.TEACHER,
    )

    assert service.get_selected_slots(day)[0].selected_hours == (1, 3)

    with pytest.raises(ValidationError):
        service.update_selected_slots(
            [SelectedSlots(student_id="s1", date=day, selected_hours=(0,))], current_role=Role.TEACHER
        )
