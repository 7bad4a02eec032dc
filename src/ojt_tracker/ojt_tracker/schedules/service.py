from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Optional

from ..core.exceptions import ScheduleSourceError
from .model import DatedOverride, EffectiveSchedule, OvertimeAuthorization
from .overtime import merge_overtime
from .repository import ScheduleRepository
from .resolver import ScheduleResolver
from .windows import DayWindows, build_day_windows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedDay:
    """Everything the engine needs to know about one student's official day."""

    work_date: date
    schedule: Optional[EffectiveSchedule]
    authorization: Optional[OvertimeAuthorization]
    windows: DayWindows

    @property
    def has_schedule(self) -> bool:
        return self.schedule is not None and not self.schedule.is_empty


class ScheduleService:
    def __init__(self, resolver: ScheduleResolver, schedules: ScheduleRepository, *, tz: tzinfo):
        self._resolver = resolver
        self._schedules = schedules
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def resolve(
        self,
        student_id: int,
        work_date: date,
        *,
        fresh: bool = False,
        dated_override: Optional[DatedOverride] = None,
    ) -> Optional[EffectiveSchedule]:
        return self._resolver.resolve(student_id, work_date, fresh=fresh, dated_override=dated_override)

    def authorization_for(
        self, student_id: int, work_date: date, *, fresh: bool = False
    ) -> Optional[OvertimeAuthorization]:
        try:
            return self._schedules.get_overtime_authorization(student_id=int(student_id), work_date=work_date)
        except ScheduleSourceError:
            if fresh:
                raise
            logger.warning(
                "Overtime authorization unavailable for student=%s date=%s; ignoring it",
                student_id,
                work_date,
                exc_info=True,
            )
            return None

    def effective_for(
        self,
        student_id: int,
        work_date: date,
        *,
        fresh: bool = False,
        dated_override: Optional[DatedOverride] = None,
    ) -> ResolvedDay:
        """Resolved schedule with the overtime authorization merged in.

        ``fresh=True`` is for gating decisions: no fallback to earlier results.
        """

        base = self.resolve(student_id, work_date, fresh=fresh, dated_override=dated_override)
        authorization = self.authorization_for(student_id, work_date, fresh=fresh)
        schedule = merge_overtime(base, authorization, self._tz)
        windows = build_day_windows(work_date, schedule, self._tz, authorization=authorization)
        return ResolvedDay(work_date=work_date, schedule=schedule, authorization=authorization, windows=windows)
