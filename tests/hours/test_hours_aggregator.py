from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from src.ojt_tracker.ojt_tracker.attendance.model import LedgerFreeze, PunchEvent
from src.ojt_tracker.ojt_tracker.common.datetime_utils import hhmm_to_minutes, local_tz, ms_at
from src.ojt_tracker.ojt_tracker.core.constants import MS_PER_HOUR, MS_PER_MINUTE
from src.ojt_tracker.ojt_tracker.core.enums import PunchStatus, PunchType
from src.ojt_tracker.ojt_tracker.hours.service import HoursAggregator, HoursReportService, format_duration
from src.ojt_tracker.ojt_tracker.schedules.model import DatedOverride, EffectiveSchedule, TimeWindow
from src.ojt_tracker.ojt_tracker.schedules.resolver import ScheduleResolver, merge_partials
from src.ojt_tracker.ojt_tracker.schedules.service import ResolvedDay, ScheduleService
from src.ojt_tracker.ojt_tracker.schedules.windows import build_day_windows
from src.ojt_tracker.ojt_tracker.students.model import Student

TZ = local_tz(8)
DAY1 = date(2024, 5, 1)
DAY2 = date(2024, 5, 2)
TODAY = date(2024, 5, 10)
REGULAR = EffectiveSchedule.from_values(am_in="08:00", am_out="12:00", pm_in="13:00", pm_out="17:00")


def at(day: date, hhmm: str) -> int:
    return ms_at(day, hhmm_to_minutes(hhmm), TZ)


def punch(punch_id, day, kind, hhmm, status=PunchStatus.APPROVED) -> PunchEvent:
    return PunchEvent(
        punch_id=punch_id,
        student_id=1,
        punch_type=PunchType(kind),
        timestamp_ms=at(day, hhmm),
        status=status,
        photo_ref="p.jpg",
    )


def resolve_with(by_date: dict[date, EffectiveSchedule]):
    def resolve(work_date: date, dated_override: Optional[DatedOverride] = None) -> ResolvedDay:
        override = dated_override.as_partial() if dated_override else None
        schedule = merge_partials([override, by_date.get(work_date)])
        return ResolvedDay(work_date, schedule, None, build_day_windows(work_date, schedule, TZ))

    return resolve


def full_day(day: date, first_id: int, status=PunchStatus.APPROVED) -> list[PunchEvent]:
    return [
        punch(first_id, day, "in", "07:45", status),
        punch(first_id + 1, day, "out", "12:10", status),
        punch(first_id + 2, day, "in", "13:00", status),
        punch(first_id + 3, day, "out", "16:00", status),
    ]


def test_aggregate_sums_clamped_sessions_per_day():
    aggregator = HoursAggregator(TZ)
    punches = full_day(DAY1, 1) + full_day(DAY2, 10, PunchStatus.PENDING)

    summary = aggregator.aggregate(punches, resolve_with({DAY1: REGULAR, DAY2: REGULAR}), today=TODAY, target_ms=100 * MS_PER_HOUR)

    assert [d.work_date for d in summary.per_day] == [DAY1, DAY2]
    assert summary.per_day[0].total_ms == 7 * MS_PER_HOUR
    assert summary.total_ms == 14 * MS_PER_HOUR
    assert summary.validated_ms == 7 * MS_PER_HOUR
    assert summary.progress == 14.0


def test_aggregate_is_idempotent():
    aggregator = HoursAggregator(TZ)
    punches = full_day(DAY1, 1)
    resolve = resolve_with({DAY1: REGULAR})

    first = aggregator.aggregate(punches, resolve, today=TODAY, target_ms=MS_PER_HOUR)
    second = aggregator.aggregate(list(reversed(punches)), resolve, today=TODAY, target_ms=MS_PER_HOUR)

    assert (first.total_ms, first.validated_ms) == (second.total_ms, second.validated_ms)
    assert first.progress == 100.0


def test_day_without_schedule_counts_tracked_hours_only():
    punches = [punch(1, DAY1, "in", "07:00"), punch(2, DAY1, "out", "09:30")]

    summary = HoursAggregator(TZ).aggregate(punches, resolve_with({}), today=TODAY, target_ms=MS_PER_HOUR)

    (day,) = summary.per_day
    assert not day.scheduled
    assert day.total_ms == 150 * MS_PER_MINUTE
    assert day.validated_ms == 0


def test_rejected_punches_never_count():
    punches = [
        punch(1, DAY1, "in", "08:00", PunchStatus.REJECTED),
        punch(2, DAY1, "out", "12:00", PunchStatus.REJECTED),
    ]

    summary = HoursAggregator(TZ).aggregate(punches, resolve_with({DAY1: REGULAR}), today=TODAY, target_ms=MS_PER_HOUR)

    assert summary.total_ms == 0
    assert summary.per_day[0].pairing.all_sessions() == ()


def test_dated_override_is_merged_onto_the_resolved_schedule():
    punches = [punch(1, DAY1, "in", "08:00"), punch(2, DAY1, "out", "12:00")]
    override = DatedOverride(supervisor_id=7, override_date=DAY1, am=TimeWindow.of("09:00", "12:00"))

    summary = HoursAggregator(TZ).aggregate(
        punches, resolve_with({DAY1: REGULAR}), {DAY1: override}, today=TODAY, target_ms=MS_PER_HOUR
    )

    assert summary.total_ms == 3 * MS_PER_HOUR
    assert summary.per_day[0].schedule.pm_in == "13:00"


def test_early_time_in_counts_its_overlap_with_the_shift():
    punches = [punch(1, DAY1, "in", "07:15"), punch(2, DAY1, "out", "12:00")]

    summary = HoursAggregator(TZ).aggregate(punches, resolve_with({DAY1: REGULAR}), today=TODAY, target_ms=MS_PER_HOUR)

    assert summary.per_day[0].pairing.am is not None
    assert summary.total_ms == 4 * MS_PER_HOUR
    assert summary.validated_ms == 4 * MS_PER_HOUR


def test_dated_override_ranks_below_the_student_schedule():
    student = SwitchableProvider(EffectiveSchedule.from_values(am_in="07:00", am_out="12:00"), name="student_schedule")
    default = SwitchableProvider(REGULAR, name="supervisor_default")
    resolver = ScheduleResolver(InMemoryStudents(), NoSchedules(), None, providers=[student, default])
    schedules = ScheduleService(resolver, NoSchedules(), tz=TZ)
    override = DatedOverride(supervisor_id=7, override_date=DAY1, am=TimeWindow.of("09:00", "12:00"))
    punches = [punch(1, DAY1, "in", "07:00"), punch(2, DAY1, "out", "12:00")]

    def resolve(work_date, dated_override=None):
        return schedules.effective_for(1, work_date, dated_override=dated_override)

    with_override = HoursAggregator(TZ).aggregate(punches, resolve, {DAY1: override}, today=TODAY, target_ms=MS_PER_HOUR)
    resolved_only = HoursAggregator(TZ).aggregate(punches, resolve, today=TODAY, target_ms=MS_PER_HOUR)

    assert with_override.per_day[0].schedule.am_in == "07:00"
    assert with_override.total_ms == resolved_only.total_ms == 5 * MS_PER_HOUR


def test_progress_with_zero_target():
    summary = HoursAggregator(TZ).aggregate([], resolve_with({}), today=TODAY, target_ms=0)

    assert summary.progress == 0.0
    assert summary.per_day == ()


def test_format_duration_rounds_to_nearest_minute():
    assert format_duration(4 * MS_PER_HOUR) == "4h 0m"
    assert format_duration(90 * MS_PER_MINUTE + 29_000) == "1h 30m"
    assert format_duration(90 * MS_PER_MINUTE + 31_000) == "1h 31m"
    assert format_duration(-5) == "0h 0m"


class InMemoryAttendance:
    def __init__(self, punches: list[PunchEvent]):
        self.punches = {p.punch_id: p for p in punches}
        self.freeze_calls = 0

    def list_for_student(self, student_id: int):
        return sorted(self.punches.values(), key=lambda p: p.timestamp_ms)

    def insert_punch(self, punch) -> int:
        raise AssertionError("not expected")

    def freeze(self, freeze: LedgerFreeze) -> bool:
        self.freeze_calls += 1
        current = self.punches.get(freeze.punch_id)
        if current is None or current.is_frozen:
            return False
        self.punches[freeze.punch_id] = replace(
            current,
            frozen_rendered_ms=freeze.rendered_ms,
            frozen_validated_ms=freeze.validated_ms,
            official_window_start=freeze.window_start,
            official_window_end=freeze.window_end,
        )
        return True


@dataclass
class SwitchableProvider:
    schedule: Optional[EffectiveSchedule]
    name: str = "switchable"

    def partial(self, ctx):
        return self.schedule


@dataclass
class InMemoryStudents:
    students: dict[int, Student] = field(default_factory=lambda: {1: Student(1, None, None, target_hours=10)})

    def get_by_id(self, student_id: int):
        return self.students.get(student_id)

    def list_ids(self):
        return sorted(self.students)


class NoSchedules:
    def get_overtime_authorization(self, *, student_id, work_date):
        return None


def build_report_service(attendance: InMemoryAttendance, provider: SwitchableProvider) -> HoursReportService:
    resolver = ScheduleResolver(InMemoryStudents(), NoSchedules(), None, providers=[provider])
    return HoursReportService(attendance, ScheduleService(resolver, NoSchedules(), tz=TZ), InMemoryStudents())


def test_freeze_ledger_writes_once_and_survives_schedule_changes():
    punches = full_day(DAY1, 1) + [
        punch(20, DAY2, "in", "08:00"),
        punch(21, DAY2, "out", "12:00", PunchStatus.PENDING),
    ]
    attendance = InMemoryAttendance(punches)
    provider = SwitchableProvider(REGULAR)
    svc = build_report_service(attendance, provider)
    now = at(TODAY, "09:00")

    before = svc.summary_for(1, now=now)
    assert svc.freeze_ledger(1, now=now) == 2
    assert attendance.punches[2].frozen_rendered_ms == 4 * MS_PER_HOUR
    assert attendance.punches[2].official_window_start == "08:00"
    assert attendance.punches[21].frozen_rendered_ms is None

    assert svc.freeze_ledger(1, now=now) == 0

    provider.schedule = EffectiveSchedule.from_values(am_in="07:30", am_out="11:00", pm_in="14:00", pm_out="15:00")
    after = svc.summary_for(1, now=now)

    assert after.per_day[0].total_ms == before.per_day[0].total_ms == 7 * MS_PER_HOUR
    assert after.per_day[0].validated_ms == before.per_day[0].validated_ms == 7 * MS_PER_HOUR
    assert after.per_day[1].total_ms == 3 * MS_PER_HOUR
    assert after.target_ms == 10 * MS_PER_HOUR

    provider.schedule = None
    unscheduled = svc.summary_for(1, now=now)

    assert not unscheduled.per_day[0].scheduled
    assert unscheduled.per_day[0].total_ms == 7 * MS_PER_HOUR
    assert unscheduled.per_day[0].validated_ms == 7 * MS_PER_HOUR
    assert unscheduled.per_day[1].total_ms == 4 * MS_PER_HOUR
    assert unscheduled.per_day[1].validated_ms == 0


def test_today_is_never_frozen():
    attendance = InMemoryAttendance([punch(1, TODAY, "in", "08:00"), punch(2, TODAY, "out", "12:00")])
    svc = build_report_service(attendance, SwitchableProvider(REGULAR))

    assert svc.freeze_ledger(1, now=at(TODAY, "13:00")) == 0
    assert attendance.freeze_calls == 0
