from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date
from typing import Optional, Tuple

from ..common.datetime_utils import normalize_hhmm
from ..core.enums import ShiftLabel

SCHEDULE_FIELDS = ("am_in", "am_out", "pm_in", "pm_out", "ot_in", "ot_out")

_SHIFT_FIELDS = {
    ShiftLabel.AM: ("am_in", "am_out"),
    ShiftLabel.PM: ("pm_in", "pm_out"),
    ShiftLabel.OT: ("ot_in", "ot_out"),
}


@dataclass(frozen=True)
class TimeWindow:
    """A start/end pair of normalized ``HH:MM`` strings (either may be absent)."""

    start: Optional[str] = None
    end: Optional[str] = None

    @classmethod
    def of(cls, start, end) -> "TimeWindow":
        return cls(start=normalize_hhmm(start), end=normalize_hhmm(end))

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True)
class EffectiveSchedule:
    """Official daily windows for one student on one date.

    Every field is a normalized ``HH:MM`` or None. The same type doubles as a
    partial schedule while merging configuration sources.
    """

    am_in: Optional[str] = None
    am_out: Optional[str] = None
    pm_in: Optional[str] = None
    pm_out: Optional[str] = None
    ot_in: Optional[str] = None
    ot_out: Optional[str] = None
    # Set when the OT pair comes from an overtime authorization.
    overtime_authorized: bool = False

    @classmethod
    def from_values(cls, **values) -> "EffectiveSchedule":
        return cls(**{k: normalize_hhmm(values.get(k)) for k in SCHEDULE_FIELDS})

    @classmethod
    def from_windows(
        cls,
        *,
        am: Optional[TimeWindow] = None,
        pm: Optional[TimeWindow] = None,
        ot: Optional[TimeWindow] = None,
    ) -> "EffectiveSchedule":
        am, pm, ot = am or TimeWindow(), pm or TimeWindow(), ot or TimeWindow()
        return cls(
            am_in=am.start,
            am_out=am.end,
            pm_in=pm.start,
            pm_out=pm.end,
            ot_in=ot.start,
            ot_out=ot.end,
        )

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, k) is None for k in SCHEDULE_FIELDS)

    def window(self, shift: ShiftLabel) -> TimeWindow:
        start_field, end_field = _SHIFT_FIELDS[shift]
        return TimeWindow(getattr(self, start_field), getattr(self, end_field))

    def filled_from(self, fallback: "EffectiveSchedule") -> "EffectiveSchedule":
        """Field-by-field merge: keep own values, take missing ones from ``fallback``."""

        merged = {k: getattr(self, k) if getattr(self, k) is not None else getattr(fallback, k) for k in SCHEDULE_FIELDS}
        return replace(self, **merged)

    def with_overtime(self, start: Optional[str], end: Optional[str], *, authorized: bool) -> "EffectiveSchedule":
        return replace(self, ot_in=start, ot_out=end, overtime_authorized=authorized)

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class CoordinatorEvent:
    """Coordinator-authored day schedule; an empty course scope means all courses."""

    event_id: int
    event_date: date
    schedule: EffectiveSchedule
    course_scope: Tuple[int, ...] = field(default_factory=tuple)
    title: str = ""

    @property
    def is_general(self) -> bool:
        return not self.course_scope


@dataclass(frozen=True)
class StudentSchedule:
    """Per-student fixed baseline schedule (no date attached)."""

    student_id: int
    schedule: EffectiveSchedule


@dataclass(frozen=True)
class DatedOverride:
    """Supervisor override of the AM and/or PM window for a single date."""

    supervisor_id: int
    override_date: date
    am: Optional[TimeWindow] = None
    pm: Optional[TimeWindow] = None

    def as_partial(self) -> EffectiveSchedule:
        return EffectiveSchedule.from_windows(am=self.am, pm=self.pm)


@dataclass(frozen=True)
class OvertimeAuthorization:
    """Supervisor-granted overtime window for one student on one date."""

    student_id: int
    work_date: date
    start_ms: int
    end_ms: int
    granted_by: Optional[int] = None
