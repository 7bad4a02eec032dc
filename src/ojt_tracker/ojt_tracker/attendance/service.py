from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import local_date, now_ms
from ..common.validators import require_positive_id
from ..core.enums import Provenance, PunchType, ReasonCode, ShiftLabel
from ..core.exceptions import PunchRejected, ScheduleSourceError
from ..schedules.service import ResolvedDay, ScheduleService
from ..schedules.windows import DayWindows
from .gate import GateDecision, OpenSession, PunchGate, reduce_open_session
from .model import NewPunch, PunchEvent, synthesize_out
from .pairing import shift_for_in
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    """Time-in / time-out submissions behind the punch gate."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        schedules: ScheduleService,
        *,
        gate: Optional[PunchGate] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._attendance = attendance
        self._schedules = schedules
        self._gate = gate or PunchGate(schedules.tz)
        self._clock = clock

    def _today(self, now: int) -> date:
        return local_date(now, self._schedules.tz)

    def _punches_on(self, punches: Sequence[PunchEvent], work_date: date) -> list[PunchEvent]:
        tz = self._schedules.tz
        return [p for p in punches if local_date(p.timestamp_ms, tz) == work_date]

    def _resolve_for_gate(self, student_id: int, work_date: date) -> ResolvedDay:
        # Gating never falls back to an earlier schedule.
        try:
            return self._schedules.effective_for(student_id, work_date, fresh=True)
        except ScheduleSourceError:
            logger.warning("Schedule sources unavailable for student=%s; refusing time-in", student_id, exc_info=True)
            return ResolvedDay(work_date=work_date, schedule=None, authorization=None, windows=DayWindows(work_date))

    def _auto_close(self, student_id: int, punches: Sequence[PunchEvent], today: date) -> Optional[PunchEvent]:
        """Close a time-in left open on an earlier day. Failures never block the new time-in."""

        live = [p for p in punches if not p.is_rejected]
        if not live:
            return None
        last = max(live, key=lambda p: (p.timestamp_ms, p.punch_id or 0))
        opened_on = self._today(last.timestamp_ms)
        if not last.is_in or opened_on >= today:
            return None

        try:
            day = self._schedules.effective_for(student_id, opened_on)
            shift = shift_for_in(last, day.windows)
            window = day.windows.get(shift) if shift is not None else None
            out = synthesize_out(last, window.end_ms if window else None, Provenance.AUTO_CLOSED)
            punch = NewPunch(
                student_id=int(student_id),
                punch_type=PunchType.OUT,
                timestamp_ms=out.timestamp_ms,
                photo_ref=None,
                is_overtime=last.is_overtime,
                slot_label=shift.value if shift else last.slot_label,
                provenance=Provenance.AUTO_CLOSED,
            )
            punch_id = self._attendance.insert_punch(punch)
        except Exception:
            logger.warning("Auto-close failed for student=%s punch=%s", student_id, last.punch_id, exc_info=True)
            return None

        logger.info("Auto-closed punch=%s for student=%s at %s", last.punch_id, student_id, out.timestamp_ms)
        return punch.as_event(punch_id)

    @staticmethod
    def _require_photo(photo_ref: Optional[str]) -> None:
        if not (photo_ref and str(photo_ref).strip()):
            raise PunchRejected(
                GateDecision.reject(ReasonCode.PHOTO_REQUIRED, "Please capture a photo before submitting.")
            )

    def check_time_in(self, student_id: int, *, now: Optional[int] = None) -> GateDecision:
        now = now if now is not None else self._clock()
        today = self._today(now)
        day = self._resolve_for_gate(student_id, today)
        punches = self._punches_on(self._attendance.list_for_student(student_id), today)
        return self._gate.decide_time_in(now, day, punches)

    def time_in(self, student_id: int, photo_ref: Optional[str], *, now: Optional[int] = None) -> PunchEvent:
        student_id = require_positive_id(student_id, "student_id")
        now = now if now is not None else self._clock()
        self._require_photo(photo_ref)
        today = self._today(now)

        day = self._resolve_for_gate(student_id, today)
        if not day.has_schedule:
            raise PunchRejected(self._gate.decide_time_in(now, day, ()))

        history = list(self._attendance.list_for_student(student_id))
        self._auto_close(student_id, history, today)

        decision = self._gate.decide_time_in(now, day, self._punches_on(history, today))
        if not decision.allow:
            raise PunchRejected(decision)

        punch = NewPunch(
            student_id=int(student_id),
            punch_type=PunchType.IN,
            timestamp_ms=int(now),
            photo_ref=str(photo_ref),
            is_overtime=decision.shift is ShiftLabel.OT,
            slot_label=decision.shift.value if decision.shift else None,
        )
        punch_id = self._attendance.insert_punch(punch)
        logger.info("Time-in student=%s shift=%s punch=%s", student_id, punch.slot_label, punch_id)
        return punch.as_event(punch_id)

    def check_time_out(self, student_id: int, *, now: Optional[int] = None, confirmed: bool = False) -> GateDecision:
        now = now if now is not None else self._clock()
        today = self._today(now)
        day = self._schedules.effective_for(student_id, today)
        punches = self._punches_on(self._attendance.list_for_student(student_id), today)
        return self._gate.decide_time_out(now, day, punches, confirmed=confirmed)

    def time_out(
        self,
        student_id: int,
        photo_ref: Optional[str],
        *,
        now: Optional[int] = None,
        confirmed: bool = False,
    ) -> PunchEvent:
        student_id = require_positive_id(student_id, "student_id")
        now = now if now is not None else self._clock()
        self._require_photo(photo_ref)
        today = self._today(now)

        day = self._schedules.effective_for(student_id, today)
        punches = self._punches_on(self._attendance.list_for_student(student_id), today)
        decision = self._gate.decide_time_out(now, day, punches, confirmed=confirmed)
        if not decision.allow:
            raise PunchRejected(decision)

        state = reduce_open_session(punches, day.windows)
        open_in = state.punch if isinstance(state, OpenSession) else None
        punch = NewPunch(
            student_id=int(student_id),
            punch_type=PunchType.OUT,
            timestamp_ms=int(now),
            photo_ref=str(photo_ref),
            is_overtime=bool(open_in and open_in.is_overtime),
            slot_label=decision.shift.value if decision.shift else None,
        )
        punch_id = self._attendance.insert_punch(punch)
        logger.info("Time-out student=%s shift=%s punch=%s", student_id, punch.slot_label, punch_id)
        return punch.as_event(punch_id)
