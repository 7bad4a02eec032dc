from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Iterator, Optional

from ..common.datetime_utils import hhmm_to_minutes, ms_at
from ..core.constants import MS_PER_HOUR, MS_PER_MINUTE, PM_CONTEXT_HOURS
from ..core.enums import ShiftLabel
from .model import EffectiveSchedule, OvertimeAuthorization, TimeWindow

HALF_DAY_MS = 12 * MS_PER_HOUR


@dataclass(frozen=True)
class ShiftWindow:
    """Absolute official window ``[start_ms, end_ms)`` of one shift on one date."""

    shift: ShiftLabel
    start_ms: int
    end_ms: int

    def contains(self, ts: int, *, grace_ms: int = 0) -> bool:
        return self.start_ms - grace_ms <= ts < self.end_ms

    def grace_start(self, grace_ms: int) -> int:
        return self.start_ms - grace_ms


@dataclass(frozen=True)
class DayWindows:
    work_date: date
    am: Optional[ShiftWindow] = None
    pm: Optional[ShiftWindow] = None
    ot: Optional[ShiftWindow] = None

    def get(self, shift: ShiftLabel) -> Optional[ShiftWindow]:
        return {ShiftLabel.AM: self.am, ShiftLabel.PM: self.pm, ShiftLabel.OT: self.ot}[shift]

    def __iter__(self) -> Iterator[ShiftWindow]:
        for w in (self.am, self.pm, self.ot):
            if w is not None:
                yield w

    @property
    def is_empty(self) -> bool:
        return self.am is None and self.pm is None and self.ot is None

    def classify(self, ts: int, *, grace_ms: int) -> Optional[ShiftLabel]:
        """Regular shift whose grace-widened window holds ``ts`` (AM tested first)."""

        for w in (self.am, self.pm):
            if w is not None and w.contains(ts, grace_ms=grace_ms):
                return w.shift
        return None

    def shift_at(self, ts: int) -> Optional[ShiftLabel]:
        """Regular shift a recorded time belongs to: AM before the AM end, else PM before the PM end."""

        for w in (self.am, self.pm):
            if w is not None and ts < w.end_ms:
                return w.shift
        return None


def _minutes(value: Optional[str], *, pm_context: bool) -> Optional[int]:
    minutes = hhmm_to_minutes(value)
    if minutes is None:
        return None
    if pm_context and minutes // 60 in PM_CONTEXT_HOURS:
        minutes += 12 * 60
    return minutes


def absolute_window(day: date, window: TimeWindow, shift: ShiftLabel, tz: tzinfo) -> Optional[ShiftWindow]:
    pm_context = shift is not ShiftLabel.AM
    start = _minutes(window.start, pm_context=pm_context)
    end = _minutes(window.end, pm_context=pm_context)
    if start is None or end is None:
        return None

    start_ms = ms_at(day, start, tz)
    end_ms = ms_at(day, end, tz)
    # Windows that cross noon or midnight ("08:00"-"01:00") roll the end forward.
    for _ in range(2):
        if end_ms < start_ms:
            end_ms += HALF_DAY_MS
    return ShiftWindow(shift=shift, start_ms=start_ms, end_ms=end_ms)


def build_day_windows(
    day: date,
    schedule: Optional[EffectiveSchedule],
    tz: tzinfo,
    *,
    authorization: Optional[OvertimeAuthorization] = None,
) -> DayWindows:
    """Turn an effective schedule into absolute windows for ``day``.

    An overtime authorization contributes its exact timestamps. A configured
    OT window never starts before the PM end.
    """

    if schedule is None and authorization is None:
        return DayWindows(work_date=day)

    schedule = schedule or EffectiveSchedule()
    am = absolute_window(day, schedule.window(ShiftLabel.AM), ShiftLabel.AM, tz)
    pm = absolute_window(day, schedule.window(ShiftLabel.PM), ShiftLabel.PM, tz)

    if authorization is not None:
        ot = ShiftWindow(
            shift=ShiftLabel.OT,
            start_ms=int(authorization.start_ms),
            end_ms=max(int(authorization.end_ms), int(authorization.start_ms)),
        )
    else:
        ot = absolute_window(day, schedule.window(ShiftLabel.OT), ShiftLabel.OT, tz)
        if ot is not None and pm is not None and not schedule.overtime_authorized and ot.start_ms < pm.end_ms:
            ot = ShiftWindow(shift=ShiftLabel.OT, start_ms=pm.end_ms, end_ms=max(ot.end_ms, pm.end_ms))

    return DayWindows(work_date=day, am=am, pm=pm, ot=ot)


def grace_ms(minutes: int) -> int:
    return int(minutes) * MS_PER_MINUTE
