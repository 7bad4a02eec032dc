from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import mysql.connector

from ..core.exceptions import ScheduleSourceError
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True) -> Iterator[Tuple[Any, Any]]:
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def config_cursor(conn_factory: DatabaseConnection, source: str) -> Iterator[Any]:
    """Read-only cursor for configuration sources.

    Driver errors are re-raised as ScheduleSourceError so the resolver can
    degrade to its last good schedule.
    """

    try:
        with db_cursor(conn_factory) as (_, cur):
            yield cur
    except mysql.connector.Error as exc:
        raise ScheduleSourceError(f"Failed to read {source}: {exc}") from exc


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
