from __future__ import annotations

from dataclasses import replace

from ...attendance.model import Session
from ...schedules.windows import DayWindows
from .base import DurationCalculator


class TrackedCalculator(DurationCalculator):
    """Unscheduled rule: raw (out - in), not below 0, never validated."""

    def measure(self, session: Session, windows: DayWindows) -> Session:
        if session.out_punch is None:
            return replace(session, duration_ms=0, validated_duration_ms=0, breakdown=())

        frozen = self.frozen(session)
        if frozen is not None:
            return frozen

        raw = max(0, session.out_punch.timestamp_ms - session.in_punch.timestamp_ms)
        return replace(session, duration_ms=raw, validated_duration_ms=0, breakdown=())
