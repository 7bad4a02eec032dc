from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, tzinfo
from itertools import groupby
from typing import Callable, Iterable, Mapping, Optional, Sequence

from ..attendance.model import LedgerFreeze, PunchEvent, Session
from ..attendance.pairing import DayPairing, map_sessions, pair_day
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import local_date, ms_to_hhmm, now_ms
from ..common.validators import require_positive_id
from ..core.constants import DEFAULT_TARGET_HOURS, MS_PER_HOUR, MS_PER_MINUTE
from ..core.enums import Provenance
from ..core.exceptions import ValidationError
from ..schedules.model import DatedOverride, EffectiveSchedule
from ..schedules.service import ResolvedDay, ScheduleService
from ..students.repository import StudentRepository
from .calculator.base import DurationCalculator
from .calculator.golden_rule_calculator import GoldenRuleCalculator
from .calculator.tracked_calculator import TrackedCalculator

logger = logging.getLogger(__name__)

# Resolves one date; the dated override, when given, takes its precedence slot.
ResolveFn = Callable[[date, Optional[DatedOverride]], ResolvedDay]


def format_duration(ms: int) -> str:
    """``"Xh Ym"`` rounded to the nearest minute."""

    minutes = int(round(max(0, int(ms)) / MS_PER_MINUTE))
    return f"{minutes // 60}h {minutes % 60}m"


@dataclass(frozen=True)
class DayReport:
    work_date: date
    pairing: DayPairing
    schedule: Optional[EffectiveSchedule]
    scheduled: bool
    total_ms: int
    validated_ms: int

    @property
    def open_session(self) -> Optional[Session]:
        return self.pairing.open_session

    def as_dict(self, tz: tzinfo) -> dict:
        def punch_time(p) -> Optional[str]:
            return ms_to_hhmm(p.timestamp_ms, tz) if p is not None else None

        def session_row(s: Optional[Session]) -> Optional[dict]:
            if s is None:
                return None
            return {
                "shift": s.shift.value if s.shift else None,
                "in": punch_time(s.in_punch),
                "out": punch_time(s.out_punch),
                "in_status": s.in_punch.status.value,
                "out_status": s.out_punch.status.value if s.out_punch else None,
                "out_provenance": s.out_punch.provenance.value if s.out_punch else None,
                "duration_ms": s.duration_ms,
                "validated_ms": s.validated_duration_ms,
                "duration": format_duration(s.duration_ms),
                "is_late": s.is_late,
                "flags": [f.value for f in s.flags],
            }

        return {
            "date": self.work_date.isoformat(),
            "scheduled": self.scheduled,
            "schedule": self.schedule.as_dict() if self.schedule else None,
            "am": session_row(self.pairing.am),
            "pm": session_row(self.pairing.pm),
            "ot": session_row(self.pairing.ot),
            "extra": [session_row(s) for s in self.pairing.extra],
            "total_ms": self.total_ms,
            "validated_ms": self.validated_ms,
            "total": format_duration(self.total_ms),
        }


@dataclass(frozen=True)
class HoursSummary:
    total_ms: int
    validated_ms: int
    target_ms: int
    per_day: tuple[DayReport, ...]

    @property
    def progress(self) -> float:
        if self.target_ms <= 0:
            return 0.0
        return min(100.0, self.total_ms * 100 / self.target_ms)

    def as_dict(self, tz: tzinfo) -> dict:
        return {
            "total_ms": self.total_ms,
            "validated_ms": self.validated_ms,
            "target_ms": self.target_ms,
            "total": format_duration(self.total_ms),
            "validated": format_duration(self.validated_ms),
            "progress": round(self.progress, 2),
            "per_day": [d.as_dict(tz) for d in self.per_day],
        }


class HoursAggregator:
    """Rolls a student's punches into per-day sessions and totals.

    Pure: the same punches and schedules always give the same summary.
    """

    def __init__(
        self,
        tz: tzinfo,
        *,
        scheduled_calculator: Optional[DurationCalculator] = None,
        tracked_calculator: Optional[DurationCalculator] = None,
    ):
        self._tz = tz
        self._scheduled = scheduled_calculator or GoldenRuleCalculator(tz)
        self._tracked = tracked_calculator or TrackedCalculator()

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def day_report(self, punches: Sequence[PunchEvent], day: ResolvedDay, *, today: date) -> DayReport:
        pairing = pair_day(punches, day.windows, is_past_day=day.work_date < today)

        if not day.has_schedule:
            measured = map_sessions(pairing, lambda s: self._tracked.measure(s, day.windows))
            sessions = measured.all_sessions()
            total = sum(s.duration_ms for s in sessions)
            # Only ledger values carry validated time without a schedule.
            validated = sum(s.validated_duration_ms for s in sessions if s.out_punch is not None and s.out_punch.is_frozen)
            return DayReport(day.work_date, measured, day.schedule, False, total, validated)

        measured = map_sessions(pairing, lambda s: self._scheduled.measure(s, day.windows))
        # Frozen history counts even when today's schedule no longer classifies it.
        counted = measured.sessions() + tuple(s for s in measured.extra if s.out_punch is not None and s.out_punch.is_frozen)
        return DayReport(
            work_date=day.work_date,
            pairing=measured,
            schedule=day.schedule,
            scheduled=True,
            total_ms=sum(s.duration_ms for s in counted),
            validated_ms=sum(s.validated_duration_ms for s in counted),
        )

    def aggregate(
        self,
        punches: Iterable[PunchEvent],
        resolve_fn: ResolveFn,
        dated_overrides: Optional[Mapping[date, DatedOverride]] = None,
        *,
        today: date,
        target_ms: int,
    ) -> HoursSummary:
        overrides = dated_overrides or {}
        ordered = sorted(punches, key=lambda p: (p.timestamp_ms, p.punch_id or 0))

        days: list[DayReport] = []
        for work_date, group in groupby(ordered, key=lambda p: local_date(p.timestamp_ms, self._tz)):
            day = resolve_fn(work_date, overrides.get(work_date))
            days.append(self.day_report(list(group), day, today=today))

        return HoursSummary(
            total_ms=sum(d.total_ms for d in days),
            validated_ms=sum(d.validated_ms for d in days),
            target_ms=int(target_ms),
            per_day=tuple(days),
        )


class HoursReportService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        schedules: ScheduleService,
        students: StudentRepository,
        *,
        aggregator: Optional[HoursAggregator] = None,
        default_target_hours: float = DEFAULT_TARGET_HOURS,
    ):
        self._attendance = attendance
        self._schedules = schedules
        self._students = students
        self._aggregator = aggregator or HoursAggregator(schedules.tz)
        self._default_target_hours = float(default_target_hours)

    @property
    def tz(self) -> tzinfo:
        return self._schedules.tz

    def _target_ms(self, student_id: int) -> int:
        student_id = require_positive_id(student_id, "student_id")
        student = self._students.get_by_id(student_id)
        if not student:
            raise ValidationError("Student not found")
        hours = student.target_hours if student.target_hours else self._default_target_hours
        return int(float(hours) * MS_PER_HOUR)

    def summary_for(self, student_id: int, *, now: Optional[int] = None) -> HoursSummary:
        now = now if now is not None else now_ms()
        target_ms = self._target_ms(student_id)
        punches = self._attendance.list_for_student(student_id)
        return self._aggregator.aggregate(
            punches,
            lambda d, override: self._schedules.effective_for(student_id, d, dated_override=override),
            today=local_date(now, self.tz),
            target_ms=target_ms,
        )

    def day_for(self, student_id: int, work_date: date, *, now: Optional[int] = None) -> DayReport:
        now = now if now is not None else now_ms()
        punches = [p for p in self._attendance.list_for_student(student_id) if local_date(p.timestamp_ms, self.tz) == work_date]
        day = self._schedules.effective_for(student_id, work_date)
        return self._aggregator.day_report(punches, day, today=local_date(now, self.tz))

    def freeze_ledger(self, student_id: int, *, now: Optional[int] = None) -> int:
        """Persist computed durations onto past validated out punches.

        Only sessions whose two ends are approved (or official) and whose out
        punch is a stored, not yet frozen punch are written. Returns the count.
        """

        now = now if now is not None else now_ms()
        summary = self.summary_for(student_id, now=now)
        today = local_date(now, self.tz)

        frozen = 0
        for day in summary.per_day:
            if day.work_date >= today or not day.scheduled:
                continue
            for session in day.pairing.sessions():
                out = session.out_punch
                if out is None or out.punch_id is None or out.is_frozen:
                    continue
                if out.provenance is Provenance.RECOVERED:
                    continue
                if not DurationCalculator.is_validated(session):
                    continue

                window = day.schedule.window(session.shift) if day.schedule and session.shift else None
                written = self._attendance.freeze(
                    LedgerFreeze(
                        punch_id=int(out.punch_id),
                        rendered_ms=session.duration_ms,
                        validated_ms=session.validated_duration_ms,
                        window_start=window.start if window else None,
                        window_end=window.end if window else None,
                    )
                )
                if written:
                    frozen += 1

        if frozen:
            logger.info("Froze %s session(s) for student=%s", frozen, student_id)
        return frozen
