from __future__ import annotations

from typing import Optional, Sequence

from ..core.constants import DEFAULT_TARGET_HOURS
from ..database.connection import DatabaseConnection
from ..database.mysql_base import config_cursor, fetchall, fetchone
from .model import Student
from .repository import StudentRepository


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, student_id: int) -> Optional[Student]:
        with config_cursor(self._conn_factory, "students") as cur:
            cur.execute(
                """
                SELECT student_id, course_id, supervisor_id, target_hours
                FROM students
                WHERE student_id=%s
                """,
                (int(student_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Student(
                student_id=int(r["student_id"]),
                course_id=int(r["course_id"]) if r.get("course_id") is not None else None,
                supervisor_id=int(r["supervisor_id"]) if r.get("supervisor_id") is not None else None,
                target_hours=float(r.get("target_hours") or DEFAULT_TARGET_HOURS),
            )

    def list_ids(self) -> Sequence[int]:
        with config_cursor(self._conn_factory, "students") as cur:
            cur.execute("SELECT student_id FROM students ORDER BY student_id")
            return [int(r["student_id"]) for r in fetchall(cur)]
