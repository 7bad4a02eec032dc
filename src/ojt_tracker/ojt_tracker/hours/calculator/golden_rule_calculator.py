from __future__ import annotations

from dataclasses import replace
from datetime import tzinfo
from typing import Optional

from ...attendance.model import Session
from ...core.enums import Provenance, SessionFlag, ShiftLabel
from ...schedules.model import TimeWindow
from ...schedules.windows import DayWindows, ShiftWindow, absolute_window
from .base import DurationCalculator


def duration_within_window(in_ts: int, out_ts: int, window_start: Optional[int], window_end: Optional[int]) -> int:
    """Golden rule: the part of [in, out] that lies inside the official window.

    Missing bounds count as a zero-length window. Never raises.
    """

    if window_start is None or window_end is None:
        return 0
    clamped_in = min(max(in_ts, window_start), window_end)
    clamped_out = min(max(out_ts, window_start), window_end)
    return max(0, clamped_out - clamped_in)


def bridges_lunch(in_ts: int, out_ts: int, windows: DayWindows) -> bool:
    """One session running from the AM window across the lunch gap into PM."""

    am, pm = windows.am, windows.pm
    if am is None or pm is None or in_ts >= out_ts:
        return False
    overlaps_am = in_ts < am.end_ms and out_ts > am.start_ms
    overlaps_pm = in_ts < pm.end_ms and out_ts > pm.start_ms
    return overlaps_am and overlaps_pm and in_ts <= am.end_ms and out_ts >= pm.start_ms


def _provenance_flags(session: Session) -> tuple[SessionFlag, ...]:
    out = session.out_punch
    if out is None:
        return ()
    if out.provenance is Provenance.AUTO_CLOSED:
        return (SessionFlag.AUTO_CLOSED,)
    if out.provenance is Provenance.RECOVERED:
        return (SessionFlag.RECOVERED,)
    return ()


class GoldenRuleCalculator(DurationCalculator):
    """Counted time = overlap of the session with each official window (AM, PM, OT)."""

    def __init__(self, tz: tzinfo):
        self._tz = tz

    def _windows_for(self, session: Session, windows: DayWindows) -> DayWindows:
        # An out punch that recorded its official window keeps using it.
        out = session.out_punch
        if out is None or session.shift is None:
            return windows
        if not (out.official_window_start and out.official_window_end):
            return windows
        pinned = absolute_window(
            windows.work_date,
            TimeWindow(out.official_window_start, out.official_window_end),
            session.shift,
            self._tz,
        )
        field_name = {ShiftLabel.AM: "am", ShiftLabel.PM: "pm", ShiftLabel.OT: "ot"}[session.shift]
        return replace(windows, **{field_name: pinned})

    def measure(self, session: Session, windows: DayWindows) -> Session:
        own: Optional[ShiftWindow] = windows.get(session.shift) if session.shift is not None else None
        is_late = own is not None and session.in_punch.timestamp_ms > own.start_ms

        if session.out_punch is None:
            return replace(session, duration_ms=0, validated_duration_ms=0, breakdown=(), is_late=is_late)

        frozen = self.frozen(session)
        if frozen is not None:
            return replace(frozen, is_late=is_late, flags=_provenance_flags(session))

        in_ts = session.in_punch.timestamp_ms
        out_ts = session.out_punch.timestamp_ms
        effective = self._windows_for(session, windows)

        breakdown = tuple(
            (w.shift, duration_within_window(in_ts, out_ts, w.start_ms, w.end_ms)) for w in effective
        )
        total = sum(ms for _, ms in breakdown)
        validated = total if self.is_validated(session) else 0

        flags = _provenance_flags(session)
        if bridges_lunch(in_ts, out_ts, effective):
            flags = (SessionFlag.MISSED_LUNCH_PUNCH,) + flags

        return replace(
            session,
            duration_ms=total,
            validated_duration_ms=validated,
            breakdown=breakdown,
            is_late=is_late,
            flags=flags,
        )
