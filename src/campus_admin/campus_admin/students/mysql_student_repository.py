from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, store_operation
from .model import Student
from .repository import StudentRepository


def _to_student(r: dict) -> Student:
    return Student(
        student_id=str(r["id"]),
        name=r["name"],
        roll_no=r["roll_no"],
        status=r.get("status") or "active",
        course=r.get("course"),
        batch=r.get("batch"),
    )


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_active(self) -> Sequence[Student]:
        with store_operation("list active students", "status=active"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    SELECT id, name, roll_no, status, course, batch
                    FROM students
                    WHERE status='active'
                    ORDER BY roll_no ASC
                    """
                )
                return [_to_student(r) for r in fetchall(cur)]

    def get_by_id(self, student_id: str) -> Optional[Student]:
        with store_operation("get student", f"student={student_id}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    "SELECT id, name, roll_no, status, course, batch FROM students WHERE id=%s",
                    (str(student_id),),
                )
                r = fetchone(cur)
                return _to_student(r) if r else None
