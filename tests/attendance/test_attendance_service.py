from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

import pytest

from src.ojt_tracker.ojt_tracker.attendance.gate import PunchGate
from src.ojt_tracker.ojt_tracker.attendance.model import LedgerFreeze, NewPunch, PunchEvent
from src.ojt_tracker.ojt_tracker.attendance.service import AttendanceService
from src.ojt_tracker.ojt_tracker.common.datetime_utils import hhmm_to_minutes, local_tz, ms_at
from src.ojt_tracker.ojt_tracker.core.enums import Provenance, PunchType, ReasonCode
from src.ojt_tracker.ojt_tracker.core.exceptions import PunchRejected, ScheduleSourceError
from src.ojt_tracker.ojt_tracker.schedules.model import EffectiveSchedule, OvertimeAuthorization
from src.ojt_tracker.ojt_tracker.schedules.resolver import ScheduleResolver
from src.ojt_tracker.ojt_tracker.schedules.service import ScheduleService
from src.ojt_tracker.ojt_tracker.students.model import Student

TZ = local_tz(8)
TODAY = date(2024, 5, 2)
YESTERDAY = TODAY - timedelta(days=1)
REGULAR = EffectiveSchedule.from_values(am_in="08:00", am_out="12:00", pm_in="13:00", pm_out="17:00")


def at(hhmm: str, day: date = TODAY) -> int:
    return ms_at(day, hhmm_to_minutes(hhmm), TZ)


class InMemoryAttendance:
    def __init__(self, punches: Optional[list[PunchEvent]] = None, *, fail_auto_close: bool = False):
        self.punches: list[PunchEvent] = list(punches or [])
        self.fail_auto_close = fail_auto_close
        self._id = max((p.punch_id or 0 for p in self.punches), default=0)

    def list_for_student(self, student_id: int):
        return sorted((p for p in self.punches if p.student_id == student_id), key=lambda p: p.timestamp_ms)

    def insert_punch(self, punch: NewPunch) -> int:
        if self.fail_auto_close and punch.provenance is Provenance.AUTO_CLOSED:
            raise RuntimeError("write failed")
        self._id += 1
        self.punches.append(punch.as_event(self._id))
        return self._id

    def freeze(self, freeze: LedgerFreeze) -> bool:
        return False


@dataclass
class FixedProvider:
    by_date: dict[date, EffectiveSchedule]
    fail: bool = False
    name: str = "fixed"

    def partial(self, ctx):
        if self.fail:
            raise ScheduleSourceError("db down")
        return self.by_date.get(ctx.work_date)


@dataclass
class InMemoryStudents:
    students: dict[int, Student] = field(default_factory=lambda: {1: Student(1, course_id=None, supervisor_id=None)})

    def get_by_id(self, student_id: int):
        return self.students.get(student_id)

    def list_ids(self):
        return sorted(self.students)


@dataclass
class InMemorySchedules:
    authorizations: dict[date, OvertimeAuthorization] = field(default_factory=dict)

    def list_events_for_date(self, event_date):
        return []

    def get_student_schedule(self, student_id):
        return None

    def get_dated_override(self, *, supervisor_id, override_date):
        return None

    def get_overtime_authorization(self, *, student_id, work_date):
        return self.authorizations.get(work_date)


def build_service(attendance: InMemoryAttendance, provider: FixedProvider, schedules: Optional[InMemorySchedules] = None):
    schedules = schedules or InMemorySchedules()
    resolver = ScheduleResolver(InMemoryStudents(), schedules, None, providers=[provider])
    schedule_service = ScheduleService(resolver, schedules, tz=TZ)
    return AttendanceService(attendance, schedule_service, gate=PunchGate(TZ, grace_minutes=30))


def test_time_in_requires_photo():
    svc = build_service(InMemoryAttendance(), FixedProvider({TODAY: REGULAR}))

    with pytest.raises(PunchRejected) as exc:
        svc.time_in(1, "", now=at("08:00"))

    assert exc.value.decision.reason_code is ReasonCode.PHOTO_REQUIRED


def test_time_in_records_the_shift_slot():
    attendance = InMemoryAttendance()
    svc = build_service(attendance, FixedProvider({TODAY: REGULAR}))

    punch = svc.time_in(1, "in.jpg", now=at("07:45"))

    assert punch.punch_type is PunchType.IN
    assert punch.slot_label == "am"
    assert not punch.is_overtime
    assert len(attendance.punches) == 1


def test_time_in_rejected_without_schedule():
    svc = build_service(InMemoryAttendance(), FixedProvider({}))

    with pytest.raises(PunchRejected) as exc:
        svc.time_in(1, "in.jpg", now=at("08:00"))

    assert exc.value.decision.reason_code is ReasonCode.NO_SCHEDULE


def test_schedule_fetch_failure_refuses_time_in():
    provider = FixedProvider({TODAY: REGULAR})
    svc = build_service(InMemoryAttendance(), provider)
    assert svc.check_time_in(1, now=at("08:00")).allow

    provider.fail = True

    decision = svc.check_time_in(1, now=at("08:00"))
    assert decision.reason_code is ReasonCode.NO_SCHEDULE


def test_open_time_in_from_yesterday_is_auto_closed_at_shift_end():
    stale = PunchEvent(punch_id=1, student_id=1, punch_type=PunchType.IN, timestamp_ms=at("09:00", YESTERDAY))
    attendance = InMemoryAttendance([stale])
    svc = build_service(attendance, FixedProvider({YESTERDAY: REGULAR, TODAY: REGULAR}))

    svc.time_in(1, "in.jpg", now=at("08:00"))

    auto_closed = [p for p in attendance.punches if p.provenance is Provenance.AUTO_CLOSED]
    assert len(auto_closed) == 1
    assert auto_closed[0].punch_type is PunchType.OUT
    assert auto_closed[0].timestamp_ms == at("12:00", YESTERDAY)
    assert auto_closed[0].photo_ref is None
    assert attendance.punches[-1].punch_type is PunchType.IN


def test_auto_close_failure_does_not_block_time_in():
    stale = PunchEvent(punch_id=1, student_id=1, punch_type=PunchType.IN, timestamp_ms=at("09:00", YESTERDAY))
    attendance = InMemoryAttendance([stale], fail_auto_close=True)
    svc = build_service(attendance, FixedProvider({YESTERDAY: REGULAR, TODAY: REGULAR}))

    punch = svc.time_in(1, "in.jpg", now=at("08:00"))

    assert punch.punch_type is PunchType.IN
    assert [p.punch_type for p in attendance.punches] == [PunchType.IN, PunchType.IN]


def test_early_time_out_raises_until_confirmed():
    opened = PunchEvent(punch_id=1, student_id=1, punch_type=PunchType.IN, timestamp_ms=at("08:00"), slot_label="am")
    attendance = InMemoryAttendance([opened])
    svc = build_service(attendance, FixedProvider({TODAY: REGULAR}))

    with pytest.raises(PunchRejected) as exc:
        svc.time_out(1, "out.jpg", now=at("11:00"))
    assert exc.value.decision.reason_code is ReasonCode.EARLY_OUT_WARNING

    punch = svc.time_out(1, "out.jpg", now=at("11:00"), confirmed=True)
    assert punch.punch_type is PunchType.OUT
    assert punch.slot_label == "am"


def test_overtime_time_out_is_flagged():
    auth = OvertimeAuthorization(student_id=1, work_date=TODAY, start_ms=at("18:00"), end_ms=at("19:00"))
    attendance = InMemoryAttendance()
    svc = build_service(attendance, FixedProvider({TODAY: REGULAR}), InMemorySchedules({TODAY: auth}))

    in_punch = svc.time_in(1, "in.jpg", now=at("17:45"))
    out_punch = svc.time_out(1, "out.jpg", now=at("19:00"))

    assert in_punch.is_overtime and in_punch.slot_label == "ot"
    assert out_punch.is_overtime


def test_time_out_without_open_session():
    svc = build_service(InMemoryAttendance(), FixedProvider({TODAY: REGULAR}))

    with pytest.raises(PunchRejected) as exc:
        svc.time_out(1, "out.jpg", now=at("12:00"))

    assert exc.value.decision.reason_code is ReasonCode.NO_OPEN_SESSION
