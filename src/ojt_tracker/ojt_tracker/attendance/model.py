from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..core.constants import MS_PER_MINUTE, SYNTHETIC_OUT_FALLBACK_MINUTES
from ..core.enums import Provenance, PunchStatus, PunchType, SessionFlag, ShiftLabel


@dataclass(frozen=True)
class PunchEvent:
    """Domain entity: a single time-in or time-out.

    Synthesized punches (recovered or auto-closed) carry their provenance
    instead of a real photo; in-memory recovered punches have no id.
    """

    punch_id: Optional[int]
    student_id: int
    punch_type: PunchType
    timestamp_ms: int
    status: PunchStatus = PunchStatus.PENDING
    photo_ref: Optional[str] = None
    validated_by: Optional[int] = None
    is_overtime: bool = False
    slot_label: Optional[str] = None
    frozen_rendered_ms: Optional[int] = None
    frozen_validated_ms: Optional[int] = None
    official_window_start: Optional[str] = None
    official_window_end: Optional[str] = None
    provenance: Provenance = Provenance.CAPTURED

    @property
    def is_in(self) -> bool:
        return self.punch_type is PunchType.IN

    @property
    def is_out(self) -> bool:
        return self.punch_type is PunchType.OUT

    @property
    def is_rejected(self) -> bool:
        return self.status is PunchStatus.REJECTED

    @property
    def is_synthesized(self) -> bool:
        return self.provenance is not Provenance.CAPTURED

    @property
    def is_frozen(self) -> bool:
        return self.frozen_rendered_ms is not None


def synthesize_out(in_punch: PunchEvent, scheduled_end_ms: Optional[int], provenance: Provenance) -> PunchEvent:
    """Time-out standing in for a forgotten one.

    Lands on the scheduled end, or one minute after the time-in when that end
    is unknown or does not come after it.
    """

    ts = scheduled_end_ms
    if ts is None or ts <= in_punch.timestamp_ms:
        ts = in_punch.timestamp_ms + SYNTHETIC_OUT_FALLBACK_MINUTES * MS_PER_MINUTE
    return PunchEvent(
        punch_id=None,
        student_id=in_punch.student_id,
        punch_type=PunchType.OUT,
        timestamp_ms=int(ts),
        status=PunchStatus.PENDING,
        is_overtime=in_punch.is_overtime,
        slot_label=in_punch.slot_label,
        provenance=provenance,
    )


@dataclass(frozen=True)
class NewPunch:
    """Write request handed to the attendance repository."""

    student_id: int
    punch_type: PunchType
    timestamp_ms: int
    photo_ref: Optional[str]
    is_overtime: bool = False
    slot_label: Optional[str] = None
    provenance: Provenance = Provenance.CAPTURED

    def as_event(self, punch_id: Optional[int]) -> PunchEvent:
        return PunchEvent(
            punch_id=punch_id,
            student_id=self.student_id,
            punch_type=self.punch_type,
            timestamp_ms=self.timestamp_ms,
            photo_ref=self.photo_ref,
            is_overtime=self.is_overtime,
            slot_label=self.slot_label,
            provenance=self.provenance,
        )


@dataclass(frozen=True)
class LedgerFreeze:
    """Durations persisted onto an out punch so history stays stable."""

    punch_id: int
    rendered_ms: int
    validated_ms: int
    window_start: Optional[str]
    window_end: Optional[str]


@dataclass(frozen=True)
class Session:
    """A paired (in, out) punch set assigned to a shift.

    ``out_punch`` is None only for today's still-open session.
    """

    shift: Optional[ShiftLabel]
    in_punch: PunchEvent
    out_punch: Optional[PunchEvent]
    duration_ms: int = 0
    validated_duration_ms: int = 0
    breakdown: Tuple[Tuple[ShiftLabel, int], ...] = ()
    is_late: bool = False
    flags: Tuple[SessionFlag, ...] = field(default_factory=tuple)

    @property
    def is_open(self) -> bool:
        return self.out_punch is None
