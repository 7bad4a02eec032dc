from __future__ import annotations

from dataclasses import dataclass

from .attendance.gate import PunchGate
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .common.datetime_utils import local_tz
from .core.constants import DEFAULT_GRACE_MINUTES, DEFAULT_TARGET_HOURS, DEFAULT_TZ_OFFSET_HOURS
from .database.connection import DBConfig, DatabaseConnection
from .hours.service import HoursAggregator, HoursReportService
from .schedules.mysql_schedule_repository import MySQLScheduleRepository
from .schedules.resolver import ScheduleResolver
from .schedules.service import ScheduleService
from .shifts.mysql_shift_repository import MySQLShiftRepository
from .students.mysql_student_repository import MySQLStudentRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    students_repo: MySQLStudentRepository
    shifts_repo: MySQLShiftRepository
    schedules_repo: MySQLScheduleRepository
    attendance_repo: MySQLAttendanceRepository

    schedule_resolver: ScheduleResolver
    schedule_service: ScheduleService
    attendance_service: AttendanceService
    hours_report_service: HoursReportService


def build_container(
    *,
    db_config: dict,
    tz_offset_hours: float = DEFAULT_TZ_OFFSET_HOURS,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
    default_target_hours: float = DEFAULT_TARGET_HOURS,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    tz = local_tz(tz_offset_hours)

    students_repo = MySQLStudentRepository(conn)
    shifts_repo = MySQLShiftRepository(conn)
    schedules_repo = MySQLScheduleRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)

    schedule_resolver = ScheduleResolver(students_repo, schedules_repo, shifts_repo)
    schedule_service = ScheduleService(schedule_resolver, schedules_repo, tz=tz)
    attendance_service = AttendanceService(
        attendance_repo,
        schedule_service,
        gate=PunchGate(tz, grace_minutes=grace_minutes),
    )
    hours_report_service = HoursReportService(
        attendance_repo,
        schedule_service,
        students_repo,
        aggregator=HoursAggregator(tz),
        default_target_hours=default_target_hours,
    )

    return Container(
        conn=conn,
        students_repo=students_repo,
        shifts_repo=shifts_repo,
        schedules_repo=schedules_repo,
        attendance_repo=attendance_repo,
        schedule_resolver=schedule_resolver,
        schedule_service=schedule_service,
        attendance_service=attendance_service,
        hours_report_service=hours_report_service,
    )
