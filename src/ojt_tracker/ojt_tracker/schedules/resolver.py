from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Iterator, Optional, Protocol, Sequence

from ..common.datetime_utils import hhmm_to_minutes
from ..core.constants import LAST_GOOD_CACHE_SIZE
from ..core.exceptions import ScheduleSourceError
from ..shifts.model import Shift
from ..shifts.repository import ShiftRepository
from ..students.model import Student
from ..students.repository import StudentRepository
from .model import CoordinatorEvent, DatedOverride, EffectiveSchedule, TimeWindow
from .repository import ScheduleRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolveContext:
    student: Student
    work_date: date


class ScheduleProvider(Protocol):
    """One configuration source contributing a partial schedule."""

    name: str

    def partial(self, ctx: ResolveContext) -> Optional[EffectiveSchedule]:
        raise NotImplementedError


def merge_partials(partials: Iterable[Optional[EffectiveSchedule]]) -> Optional[EffectiveSchedule]:
    """Field-by-field merge; the first partial that supplies a field wins."""

    merged = EffectiveSchedule()
    for partial in partials:
        if partial is not None:
            merged = merged.filled_from(partial)
    return None if merged.is_empty else merged


def pick_event(events: Sequence[CoordinatorEvent], course_id: Optional[int]) -> Optional[CoordinatorEvent]:
    """Course-specific event first, then the general (scope-empty) one."""

    if course_id is not None:
        for ev in events:
            if course_id in ev.course_scope:
                return ev
    for ev in events:
        if ev.is_general:
            return ev
    return None


def _start_minutes(row: Shift) -> int:
    minutes = hhmm_to_minutes(row.official_start)
    return minutes if minutes is not None else 24 * 60


def _is_am_name(key: str) -> bool:
    return "am" in key or "morning" in key


def _is_pm_name(key: str) -> bool:
    return "pm" in key or "afternoon" in key


def schedule_from_shifts(rows: Sequence[Shift]) -> Optional[EffectiveSchedule]:
    """Derive a supervisor's default schedule from their shift rows.

    Rows are classified by name keyword. When either AM or PM cannot be found
    that way, the two earliest-starting rows are used instead.
    """

    rows = sorted((r for r in rows if r.official_start or r.official_end), key=_start_minutes)
    if not rows:
        return None

    am_row = next((r for r in rows if _is_am_name(r.name_key)), None)
    pm_row = next((r for r in rows if _is_pm_name(r.name_key)), None)
    ot_row = next((r for r in rows if r.name_key in ("overtime shift", "overtime")), None)

    if am_row is None or pm_row is None:
        regular = [r for r in rows if r is not ot_row]
        am_row = regular[0] if regular else None
        pm_row = regular[1] if len(regular) > 1 else None

    def window(row: Optional[Shift]) -> Optional[TimeWindow]:
        return TimeWindow.of(row.official_start, row.official_end) if row is not None else None

    partial = EffectiveSchedule.from_windows(am=window(am_row), pm=window(pm_row), ot=window(ot_row))
    return None if partial.is_empty else partial


class CoordinatorEventProvider:
    name = "coordinator_event"

    def __init__(self, schedules: ScheduleRepository):
        self._schedules = schedules

    def partial(self, ctx: ResolveContext) -> Optional[EffectiveSchedule]:
        event = pick_event(self._schedules.list_events_for_date(ctx.work_date), ctx.student.course_id)
        return event.schedule if event else None


class StudentScheduleProvider:
    name = "student_schedule"

    def __init__(self, schedules: ScheduleRepository):
        self._schedules = schedules

    def partial(self, ctx: ResolveContext) -> Optional[EffectiveSchedule]:
        row = self._schedules.get_student_schedule(ctx.student.student_id)
        return row.schedule if row else None


class DatedOverrideProvider:
    name = "dated_override"

    def __init__(self, schedules: ScheduleRepository):
        self._schedules = schedules

    def partial(self, ctx: ResolveContext) -> Optional[EffectiveSchedule]:
        if ctx.student.supervisor_id is None:
            return None
        override = self._schedules.get_dated_override(
            supervisor_id=ctx.student.supervisor_id, override_date=ctx.work_date
        )
        return override.as_partial() if override else None


class SupervisorDefaultProvider:
    name = "supervisor_default"

    def __init__(self, shifts: ShiftRepository):
        self._shifts = shifts

    def partial(self, ctx: ResolveContext) -> Optional[EffectiveSchedule]:
        if ctx.student.supervisor_id is None:
            return None
        return schedule_from_shifts(self._shifts.list_for_supervisor(ctx.student.supervisor_id))


def default_providers(schedules: ScheduleRepository, shifts: ShiftRepository) -> list[ScheduleProvider]:
    """Precedence order: coordinator event, student baseline, dated override, supervisor default."""

    return [
        CoordinatorEventProvider(schedules),
        StudentScheduleProvider(schedules),
        DatedOverrideProvider(schedules),
        SupervisorDefaultProvider(shifts),
    ]


class ScheduleResolver:
    """Chain-of-responsibility merge over the configured schedule providers."""

    def __init__(
        self,
        students: StudentRepository,
        schedules: ScheduleRepository,
        shifts: ShiftRepository,
        *,
        providers: Optional[Sequence[ScheduleProvider]] = None,
        cache_size: int = LAST_GOOD_CACHE_SIZE,
    ):
        self._students = students
        self._providers = list(providers) if providers is not None else default_providers(schedules, shifts)
        self._cache_size = max(0, int(cache_size))
        self._last_good: OrderedDict[tuple[int, date], Optional[EffectiveSchedule]] = OrderedDict()

    def resolve(
        self,
        student_id: int,
        work_date: date,
        *,
        fresh: bool = False,
        dated_override: Optional[DatedOverride] = None,
    ) -> Optional[EffectiveSchedule]:
        """Effective schedule for (student, date), or None when nothing resolves.

        ``dated_override`` takes the dated-override slot of the chain instead of
        the stored one. With ``fresh=False`` a configuration fetch failure falls
        back to the last schedule resolved for the same key. With ``fresh=True``
        it propagates.
        """

        key = (int(student_id), work_date)
        try:
            schedule = self._resolve_uncached(int(student_id), work_date, dated_override)
        except ScheduleSourceError:
            if fresh:
                raise
            logger.warning(
                "Schedule sources unavailable for student=%s date=%s; using last resolved schedule",
                student_id,
                work_date,
                exc_info=True,
            )
            return self._last_good.get(key)

        if dated_override is None:
            self._remember(key, schedule)
        return schedule

    def _remember(self, key: tuple[int, date], schedule: Optional[EffectiveSchedule]) -> None:
        if self._cache_size == 0:
            return
        self._last_good[key] = schedule
        self._last_good.move_to_end(key)
        while len(self._last_good) > self._cache_size:
            self._last_good.popitem(last=False)

    def _override_slot(self) -> int:
        names = [p.name for p in self._providers]
        for name in (DatedOverrideProvider.name, SupervisorDefaultProvider.name):
            if name in names:
                return names.index(name)
        return len(names)

    def _partials(
        self, ctx: ResolveContext, dated_override: Optional[DatedOverride]
    ) -> Iterator[Optional[EffectiveSchedule]]:
        slot = self._override_slot() if dated_override is not None else -1
        for index, provider in enumerate(self._providers):
            if index == slot:
                yield dated_override.as_partial()
                if provider.name == DatedOverrideProvider.name:
                    continue
            yield provider.partial(ctx)
        if slot == len(self._providers):
            yield dated_override.as_partial()

    def _resolve_uncached(
        self, student_id: int, work_date: date, dated_override: Optional[DatedOverride] = None
    ) -> Optional[EffectiveSchedule]:
        student = self._students.get_by_id(student_id)
        if student is None:
            return None

        ctx = ResolveContext(student=student, work_date=work_date)
        return merge_partials(self._partials(ctx, dated_override))
