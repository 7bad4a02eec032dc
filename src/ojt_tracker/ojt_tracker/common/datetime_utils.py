from __future__ import annotations

import time as _time
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional

from ..core.constants import DEFAULT_TZ_OFFSET_HOURS, MS_PER_MINUTE


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def local_tz(offset_hours: float = DEFAULT_TZ_OFFSET_HOURS) -> tzinfo:
    return timezone(timedelta(hours=offset_hours))


def now_ms() -> int:
    """Current wall clock in epoch milliseconds.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return int(_time.time() * 1000)


def to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def from_ms(ms: int, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz)


def local_date(ms: int, tz: tzinfo) -> date:
    return from_ms(ms, tz).date()


def normalize_hhmm(value: Any) -> Optional[str]:
    """Normalize a time-of-day value to ``HH:MM``.

    Accepts ``datetime.time``, ``timedelta`` (MySQL TIME columns) and strings
    such as ``"8:00"``, ``"08:00:00"`` or ``"1:30 PM"``. Seconds are dropped.
    Anything unparsable yields None.
    """

    if value is None:
        return None

    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"

    if isinstance(value, timedelta):
        total_minutes = (int(value.total_seconds()) % 86400) // 60
        return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"

    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    meridiem = None
    for suffix in ("am", "pm"):
        if text.endswith(suffix):
            meridiem = suffix
            text = text[: -len(suffix)].strip()
            break

    parts = text.split(":")
    if len(parts) < 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None

    if meridiem == "pm" and hours < 12:
        hours += 12
    elif meridiem == "am" and hours == 12:
        hours = 0

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return f"{hours:02d}:{minutes:02d}"


def hhmm_to_minutes(value: Any) -> Optional[int]:
    t = normalize_hhmm(value)
    if t is None:
        return None
    hours, minutes = t.split(":")
    return int(hours) * 60 + int(minutes)


def ms_to_hhmm(ms: int, tz: tzinfo) -> str:
    return from_ms(ms, tz).strftime("%H:%M")


def ms_at(day: date, minutes_of_day: int, tz: tzinfo) -> int:
    """Epoch ms of ``day`` at ``minutes_of_day`` local time (may exceed one day)."""
    midnight = datetime.combine(day, time(0, 0), tzinfo=tz)
    return to_ms(midnight) + int(minutes_of_day) * MS_PER_MINUTE
