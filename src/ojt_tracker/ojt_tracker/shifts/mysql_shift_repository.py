from __future__ import annotations

from typing import Sequence

from ..common.datetime_utils import normalize_hhmm
from ..core.constants import OVERRIDE_NAME_PREFIX
from ..database.connection import DatabaseConnection
from ..database.mysql_base import config_cursor, fetchall
from .model import Shift
from .repository import ShiftRepository


class MySQLShiftRepository(ShiftRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_supervisor(self, supervisor_id: int) -> Sequence[Shift]:
        with config_cursor(self._conn_factory, "supervisor shifts") as cur:
            cur.execute(
                """
                SELECT shift_id, supervisor_id, shift_name, official_start, official_end
                FROM shifts
                WHERE supervisor_id=%s AND shift_name NOT LIKE %s
                ORDER BY official_start
                """,
                (int(supervisor_id), OVERRIDE_NAME_PREFIX + "%"),
            )
            rows = fetchall(cur)
            return [
                Shift(
                    shift_id=int(r["shift_id"]),
                    supervisor_id=int(r["supervisor_id"]),
                    shift_name=r.get("shift_name") or "",
                    official_start=normalize_hhmm(r.get("official_start")),
                    official_end=normalize_hhmm(r.get("official_end")),
                )
                for r in rows
            ]
