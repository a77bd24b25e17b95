from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository, MySQLSelectedSlotsRepository
from .attendance.repository import AttendanceRepository, SelectedSlotsRepository
from .attendance.service import AttendanceService
from .attendance.session import AttendanceSession
from .core.constants import DEFAULT_GST_RATE, RECENT_UPDATE_SECONDS
from .core.enums import Role
from .database.connection import DBConfig, DatabaseConnection
from .fees.mysql_fee_repository import MySQLFeeRepository
from .fees.repository import FeeRepository
from .fees.service import FeeLedgerService
from .realtime.feed import InProcessChangeFeed
from .realtime.notifier import AttendanceNotifier
from .reports.service import MonthlyReportService
from .students.mysql_student_repository import MySQLStudentRepository
from .students.repository import StudentRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    feed: InProcessChangeFeed
    notifier: AttendanceNotifier

    users_repo: UserRepository
    students_repo: StudentRepository
    attendance_repo: AttendanceRepository
    slots_repo: SelectedSlotsRepository
    fees_repo: FeeRepository

    auth_service: AuthService
    attendance_service: AttendanceService
    report_service: MonthlyReportService
    fee_service: FeeLedgerService

    recent_update_seconds: float = RECENT_UPDATE_SECONDS

    def open_session(self, role: Role) -> AttendanceSession:
        """A working copy for one operator, wired to the shared notifier."""
        return AttendanceSession(
            self.attendance_service,
            self.notifier,
            role=role,
            recent_window=self.recent_update_seconds,
        )


def wire(
    *,
    feed: InProcessChangeFeed,
    users_repo: UserRepository,
    students_repo: StudentRepository,
    attendance_repo: AttendanceRepository,
    slots_repo: SelectedSlotsRepository,
    fees_repo: FeeRepository,
    conn: Optional[DatabaseConnection] = None,
    gst_rate: Decimal = DEFAULT_GST_RATE,
    recent_update_seconds: float = RECENT_UPDATE_SECONDS,
) -> Container:
    """Build services on top of the given repositories."""
    return Container(
        conn=conn,
        feed=feed,
        notifier=AttendanceNotifier(feed),
        users_repo=users_repo,
        students_repo=students_repo,
        attendance_repo=attendance_repo,
        slots_repo=slots_repo,
        fees_repo=fees_repo,
        auth_service=AuthService(users_repo),
        attendance_service=AttendanceService(attendance_repo, students_repo, slots_repo),
        report_service=MonthlyReportService(attendance_repo, students_repo, slots_repo),
        fee_service=FeeLedgerService(fees_repo, students_repo, gst_rate=Decimal(str(gst_rate))),
        recent_update_seconds=float(recent_update_seconds),
    )


def build_container(
    *,
    db_config: dict,
    gst_rate: Decimal = DEFAULT_GST_RATE,
    recent_update_seconds: float = RECENT_UPDATE_SECONDS,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))
    feed = InProcessChangeFeed()

    return wire(
        conn=conn,
        feed=feed,
        users_repo=MySQLUserRepository(conn),
        students_repo=MySQLStudentRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn, feed),
        slots_repo=MySQLSelectedSlotsRepository(conn),
        fees_repo=MySQLFeeRepository(conn),
        gst_rate=gst_rate,
        recent_update_seconds=recent_update_seconds,
    )
