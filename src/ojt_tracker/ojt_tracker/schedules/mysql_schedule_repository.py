from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..common.datetime_utils import to_ms
from ..core.constants import OVERRIDE_NAME_PREFIX
from ..database.connection import DatabaseConnection
from ..database.mysql_base import config_cursor, fetchall, fetchone
from .model import CoordinatorEvent, DatedOverride, EffectiveSchedule, OvertimeAuthorization, StudentSchedule, TimeWindow
from .repository import ScheduleRepository


def _schedule_from_row(r: dict) -> EffectiveSchedule:
    return EffectiveSchedule.from_values(
        am_in=r.get("am_in"),
        am_out=r.get("am_out"),
        pm_in=r.get("pm_in"),
        pm_out=r.get("pm_out"),
        ot_in=r.get("overtime_in"),
        ot_out=r.get("overtime_out"),
    )


def _as_ms(value) -> int:
    if isinstance(value, datetime):
        return to_ms(value)
    return int(value)


class MySQLScheduleRepository(ScheduleRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_events_for_date(self, event_date: date) -> Sequence[CoordinatorEvent]:
        with config_cursor(self._conn_factory, "coordinator events") as cur:
            cur.execute(
                """
                SELECT e.event_id, e.title, e.event_date,
                       e.am_in, e.am_out, e.pm_in, e.pm_out, e.overtime_in, e.overtime_out,
                       GROUP_CONCAT(ec.course_id) AS course_ids
                FROM coordinator_events e
                LEFT JOIN coordinator_event_courses ec ON ec.event_id = e.event_id
                WHERE e.event_date=%s
                GROUP BY e.event_id
                ORDER BY e.event_id
                """,
                (event_date,),
            )
            rows = fetchall(cur)
            out: list[CoordinatorEvent] = []
            for r in rows:
                raw_ids = str(r.get("course_ids") or "")
                scope = tuple(int(x) for x in raw_ids.split(",") if x.strip())
                out.append(
                    CoordinatorEvent(
                        event_id=int(r["event_id"]),
                        event_date=r["event_date"],
                        schedule=_schedule_from_row(r),
                        course_scope=scope,
                        title=r.get("title") or "",
                    )
                )
            return out

    def get_student_schedule(self, student_id: int) -> Optional[StudentSchedule]:
        with config_cursor(self._conn_factory, "student schedules") as cur:
            cur.execute(
                """
                SELECT student_id, am_in, am_out, pm_in, pm_out, overtime_in, overtime_out
                FROM student_shift_schedules
                WHERE student_id=%s
                """,
                (int(student_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return StudentSchedule(student_id=int(r["student_id"]), schedule=_schedule_from_row(r))

    def get_dated_override(self, *, supervisor_id: int, override_date: date) -> Optional[DatedOverride]:
        # Overrides live in the shifts table as OVERRIDE:::<YYYY-MM-DD>:::<AM|PM> rows.
        prefix = f"{OVERRIDE_NAME_PREFIX}{override_date.isoformat()}:::"
        with config_cursor(self._conn_factory, "dated overrides") as cur:
            cur.execute(
                """
                SELECT shift_name, official_start, official_end
                FROM shifts
                WHERE supervisor_id=%s AND shift_name LIKE %s
                """,
                (int(supervisor_id), prefix + "%"),
            )
            rows = fetchall(cur)

        windows: dict[str, TimeWindow] = {}
        for r in rows:
            slot = str(r["shift_name"])[len(prefix):].strip().upper()
            if slot in ("AM", "PM"):
                windows[slot] = TimeWindow.of(r.get("official_start"), r.get("official_end"))

        if not windows:
            return None
        return DatedOverride(
            supervisor_id=int(supervisor_id),
            override_date=override_date,
            am=windows.get("AM"),
            pm=windows.get("PM"),
        )

    def get_overtime_authorization(self, *, student_id: int, work_date: date) -> Optional[OvertimeAuthorization]:
        with config_cursor(self._conn_factory, "overtime authorizations") as cur:
            cur.execute(
                """
                SELECT student_id, effective_date, overtime_start, overtime_end, created_by_id
                FROM overtime_shifts
                WHERE student_id=%s AND effective_date=%s
                ORDER BY id DESC
                LIMIT 1
                """,
                (int(student_id), work_date),
            )
            r = fetchone(cur)
            if not r:
                return None
            return OvertimeAuthorization(
                student_id=int(r["student_id"]),
                work_date=r["effective_date"],
                start_ms=_as_ms(r["overtime_start"]),
                end_ms=_as_ms(r["overtime_end"]),
                granted_by=int(r["created_by_id"]) if r.get("created_by_id") is not None else None,
            )
