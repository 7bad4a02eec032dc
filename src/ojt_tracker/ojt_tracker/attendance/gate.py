from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, Optional, Union

from ..common.datetime_utils import ms_to_hhmm
from ..core.constants import DEFAULT_GRACE_MINUTES
from ..core.enums import ReasonCode, ShiftLabel
from ..schedules.service import ResolvedDay
from ..schedules.windows import DayWindows, ShiftWindow, grace_ms
from .model import PunchEvent
from .pairing import recorded_shift, shift_for_in


@dataclass(frozen=True)
class GateDecision:
    """Answer handed to the capture workflow for one punch attempt."""

    allow: bool
    reason_code: Optional[ReasonCode] = None
    message: str = ""
    shift: Optional[ShiftLabel] = None
    detail: Optional[str] = None
    requires_confirmation: bool = False

    @classmethod
    def accept(cls, shift: Optional[ShiftLabel], message: str) -> "GateDecision":
        return cls(allow=True, shift=shift, message=message)

    @classmethod
    def reject(
        cls,
        reason_code: ReasonCode,
        message: str,
        *,
        detail: Optional[str] = None,
        shift: Optional[ShiftLabel] = None,
    ) -> "GateDecision":
        return cls(allow=False, reason_code=reason_code, message=message, detail=detail, shift=shift)

    def as_dict(self) -> dict:
        return {
            "allow": self.allow,
            "reason_code": self.reason_code.value if self.reason_code else None,
            "message": self.message,
            "shift": self.shift.value if self.shift else None,
            "detail": self.detail,
            "requires_confirmation": self.requires_confirmation,
        }


@dataclass(frozen=True)
class NoOpenSession:
    pass


@dataclass(frozen=True)
class OpenSession:
    shift: Optional[ShiftLabel]
    punch: PunchEvent


OpenState = Union[NoOpenSession, OpenSession]


def reduce_open_session(punches: Iterable[PunchEvent], windows: DayWindows) -> OpenState:
    """Fold a day's punches into the current open-session state.

    The latest in without a later out is the open one; rejected punches are ignored.
    """

    ordered = sorted((p for p in punches if not p.is_rejected), key=lambda p: (p.timestamp_ms, p.punch_id or 0))
    open_in: Optional[PunchEvent] = None
    for p in ordered:
        if p.is_in:
            open_in = p
        elif open_in is not None and p.timestamp_ms > open_in.timestamp_ms:
            open_in = None

    if open_in is None:
        return NoOpenSession()
    return OpenSession(shift=shift_for_in(open_in, windows), punch=open_in)


class PunchGate:
    """State machine deciding whether a time-in or time-out may happen now."""

    def __init__(self, tz: tzinfo, *, grace_minutes: int = DEFAULT_GRACE_MINUTES):
        self._tz = tz
        self._grace_ms = grace_ms(grace_minutes)

    @property
    def grace_ms(self) -> int:
        return self._grace_ms

    def _hhmm(self, ms: int) -> str:
        return ms_to_hhmm(ms, self._tz)

    def consumed_shifts(self, windows: DayWindows, today_punches: Iterable[PunchEvent]) -> set[ShiftLabel]:
        used: set[ShiftLabel] = set()
        for p in today_punches:
            if not p.is_in or p.is_rejected:
                continue
            if p.is_overtime:
                used.add(ShiftLabel.OT)
                continue
            shift = recorded_shift(p, windows) or windows.classify(p.timestamp_ms, grace_ms=self._grace_ms)
            if shift is not None:
                used.add(shift)
            elif windows.ot is not None and windows.ot.contains(p.timestamp_ms, grace_ms=self._grace_ms):
                used.add(ShiftLabel.OT)
        return used

    def decide_time_in(self, now_ms: int, day: ResolvedDay, today_punches: Iterable[PunchEvent]) -> GateDecision:
        windows = day.windows
        if not day.has_schedule or windows.is_empty:
            return GateDecision.reject(
                ReasonCode.NO_SCHEDULE,
                "No official schedule is set for today. Ask your supervisor to assign one.",
            )

        g = self._grace_ms
        used = self.consumed_shifts(windows, list(today_punches))
        regular = [w for w in (windows.am, windows.pm) if w is not None]

        for w in regular:
            if w.shift not in used and w.contains(now_ms, grace_ms=g):
                return GateDecision.accept(w.shift, f"Time-in accepted for the {w.shift.value.upper()} shift.")

        ot = windows.ot
        if ot is not None and ShiftLabel.OT not in used and ot.contains(now_ms, grace_ms=g):
            return GateDecision.accept(ShiftLabel.OT, "Time-in accepted for overtime.")

        for w in regular + ([ot] if ot is not None else []):
            if w.shift in used and w.contains(now_ms, grace_ms=g):
                return GateDecision.reject(
                    ReasonCode.DUPLICATE_OR_OUT_OF_WINDOW,
                    f"You already timed in for the {w.shift.value.upper()} shift.",
                    detail="already_used",
                    shift=w.shift,
                )

        if regular and now_ms < max(w.end_ms for w in regular):
            upcoming = self._next_window(now_ms, regular + ([ot] if ot is not None else []), used)
            message = "It is too early to time in."
            if upcoming is not None:
                message = f"It is too early to time in. You can time in from {self._hhmm(upcoming.grace_start(g))}."
            return GateDecision.reject(ReasonCode.DUPLICATE_OR_OUT_OF_WINDOW, message, detail="too_early")

        if day.authorization is not None and ot is not None:
            if now_ms < ot.grace_start(g):
                return GateDecision.reject(
                    ReasonCode.AUTHORIZATION_WINDOW,
                    f"Overtime time-in opens at {self._hhmm(ot.grace_start(g))}.",
                    detail="too_early",
                    shift=ShiftLabel.OT,
                )
            return GateDecision.reject(
                ReasonCode.AUTHORIZATION_WINDOW,
                f"The authorized overtime window ended at {self._hhmm(ot.end_ms)}.",
                detail="ended",
                shift=ShiftLabel.OT,
            )

        if ot is not None:
            if now_ms < ot.grace_start(g):
                return GateDecision.reject(
                    ReasonCode.DUPLICATE_OR_OUT_OF_WINDOW,
                    f"It is too early to time in. Overtime opens at {self._hhmm(ot.grace_start(g))}.",
                    detail="too_early",
                    shift=ShiftLabel.OT,
                )
            return GateDecision.reject(
                ReasonCode.DUPLICATE_OR_OUT_OF_WINDOW,
                "Time-in is outside all official windows for today.",
                detail="outside_window",
            )

        if regular:
            return GateDecision.reject(
                ReasonCode.LATE_IN,
                "Official hours for today are over and no overtime was authorized.",
            )

        return GateDecision.reject(
            ReasonCode.DUPLICATE_OR_OUT_OF_WINDOW,
            "Time-in is outside all official windows for today.",
            detail="outside_window",
        )

    def _next_window(self, now_ms: int, windows: list[ShiftWindow], used: set[ShiftLabel]) -> Optional[ShiftWindow]:
        later = [w for w in windows if w.shift not in used and w.grace_start(self._grace_ms) > now_ms]
        return min(later, key=lambda w: w.start_ms) if later else None

    def decide_time_out(
        self,
        now_ms: int,
        day: ResolvedDay,
        today_punches: Iterable[PunchEvent],
        *,
        confirmed: bool = False,
    ) -> GateDecision:
        state = reduce_open_session(today_punches, day.windows)
        if isinstance(state, NoOpenSession):
            return GateDecision.reject(ReasonCode.NO_OPEN_SESSION, "You have no open time-in for today.")

        shift = ShiftLabel.OT if state.punch.is_overtime else state.shift
        window = day.windows.get(shift) if shift is not None else None
        if window is not None and now_ms < window.end_ms and not confirmed:
            return GateDecision(
                allow=False,
                reason_code=ReasonCode.EARLY_OUT_WARNING,
                message=f"Your {shift.value.upper()} shift ends at {self._hhmm(window.end_ms)}. Time out early anyway?",
                shift=shift,
                detail="early_out",
                requires_confirmation=True,
            )
        return GateDecision.accept(shift, "Time-out accepted.")
