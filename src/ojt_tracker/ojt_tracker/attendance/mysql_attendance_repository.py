from __future__ import annotations

from typing import Sequence

from ..common.datetime_utils import normalize_hhmm
from ..core.enums import Provenance, PunchStatus, PunchType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import LedgerFreeze, NewPunch, PunchEvent
from .repository import AttendanceRepository


def _optional_int(value):
    return int(value) if value is not None else None


def _row_to_punch(r: dict) -> PunchEvent:
    try:
        provenance = Provenance(r.get("provenance") or Provenance.CAPTURED.value)
    except ValueError:
        provenance = Provenance.CAPTURED
    return PunchEvent(
        punch_id=int(r["punch_id"]),
        student_id=int(r["student_id"]),
        punch_type=PunchType(str(r["punch_type"]).lower()),
        timestamp_ms=int(r["ts_ms"]),
        status=PunchStatus.parse(r.get("status")),
        photo_ref=r.get("photo_ref"),
        validated_by=_optional_int(r.get("validated_by")),
        is_overtime=bool(r.get("is_overtime")),
        slot_label=r.get("slot_label"),
        frozen_rendered_ms=_optional_int(r.get("frozen_rendered_ms")),
        frozen_validated_ms=_optional_int(r.get("frozen_validated_ms")),
        official_window_start=normalize_hhmm(r.get("official_window_start")),
        official_window_end=normalize_hhmm(r.get("official_window_end")),
        provenance=provenance,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_student(self, student_id: int) -> Sequence[PunchEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT punch_id, student_id, punch_type, ts_ms, status, photo_ref, validated_by,
                       is_overtime, slot_label, frozen_rendered_ms, frozen_validated_ms,
                       official_window_start, official_window_end, provenance
                FROM attendance
                WHERE student_id=%s
                ORDER BY ts_ms ASC, punch_id ASC
                """,
                (int(student_id),),
            )
            return [_row_to_punch(r) for r in fetchall(cur)]

    def insert_punch(self, punch: NewPunch) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance(student_id, punch_type, ts_ms, status, photo_ref, is_overtime, slot_label, provenance)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(punch.student_id),
                    punch.punch_type.value,
                    int(punch.timestamp_ms),
                    PunchStatus.PENDING.value,
                    punch.photo_ref,
                    1 if punch.is_overtime else 0,
                    punch.slot_label,
                    punch.provenance.value,
                ),
            )
            return int(cur.lastrowid or 0)

    def freeze(self, freeze: LedgerFreeze) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            # Conditional update keeps the freeze at-most-once per punch.
            cur.execute(
                """
                UPDATE attendance
                SET frozen_rendered_ms=%s, frozen_validated_ms=%s,
                    official_window_start=%s, official_window_end=%s
                WHERE punch_id=%s AND punch_type='out' AND frozen_rendered_ms IS NULL
                """,
                (
                    int(freeze.rendered_ms),
                    int(freeze.validated_ms),
                    freeze.window_start,
                    freeze.window_end,
                    int(freeze.punch_id),
                ),
            )
            return cur.rowcount > 0
