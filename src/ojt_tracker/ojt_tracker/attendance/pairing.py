from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable, Optional, Tuple

from ..core.enums import Provenance, ShiftLabel
from ..schedules.windows import DayWindows
from .model import PunchEvent, Session, synthesize_out


@dataclass(frozen=True)
class DayPairing:
    """Sessions of one day after pairing.

    ``extra`` holds sessions outside every regular window, or a second session
    for a shift that is already filled; they are not shown as AM/PM.
    """

    work_date: date
    am: Optional[Session] = None
    pm: Optional[Session] = None
    ot: Optional[Session] = None
    extra: Tuple[Session, ...] = field(default_factory=tuple)

    def sessions(self) -> Tuple[Session, ...]:
        return tuple(s for s in (self.am, self.pm, self.ot) if s is not None)

    def all_sessions(self) -> Tuple[Session, ...]:
        return self.sessions() + self.extra

    @property
    def open_session(self) -> Optional[Session]:
        open_ = [s for s in self.all_sessions() if s.is_open]
        return max(open_, key=lambda s: s.in_punch.timestamp_ms) if open_ else None


def _close(
    in_punch: PunchEvent,
    out_punch: Optional[PunchEvent],
    shift: Optional[ShiftLabel],
    windows: DayWindows,
    is_past_day: bool,
) -> Session:
    if out_punch is None and is_past_day:
        window = windows.get(shift) if shift is not None else None
        out_punch = synthesize_out(in_punch, window.end_ms if window else None, Provenance.RECOVERED)
    return Session(shift=shift, in_punch=in_punch, out_punch=out_punch)


def recorded_shift(punch: PunchEvent, windows: DayWindows) -> Optional[ShiftLabel]:
    """Shift stored on the punch itself, if the day still has that window."""

    if punch.is_overtime:
        return ShiftLabel.OT
    if punch.slot_label:
        try:
            label = ShiftLabel(punch.slot_label.lower())
        except ValueError:
            label = None
        if label in (ShiftLabel.AM, ShiftLabel.PM) and windows.get(label) is not None:
            return label
    return None


def shift_for_in(punch: PunchEvent, windows: DayWindows) -> Optional[ShiftLabel]:
    """Shift an in punch belongs to: its recorded slot, else by the shift ends."""

    return recorded_shift(punch, windows) or windows.shift_at(punch.timestamp_ms)


def _regular_chains(punches: Iterable[PunchEvent]) -> list[tuple[PunchEvent, Optional[PunchEvent]]]:
    chains: list[tuple[PunchEvent, Optional[PunchEvent]]] = []
    open_in: Optional[PunchEvent] = None
    for p in punches:
        if p.is_in:
            # A second in without an out replaces the stale one.
            open_in = p
        elif open_in is not None and p.timestamp_ms > open_in.timestamp_ms:
            chains.append((open_in, p))
            open_in = None
    if open_in is not None:
        chains.append((open_in, None))
    return chains


def _overtime_chain(punches: list[PunchEvent]) -> Optional[tuple[PunchEvent, Optional[PunchEvent]]]:
    first_in = next((p for p in punches if p.is_in), None)
    if first_in is None:
        return None
    first_out = next((p for p in punches if p.is_out and p.timestamp_ms > first_in.timestamp_ms), None)
    return first_in, first_out


def pair_day(
    punches: Iterable[PunchEvent],
    windows: DayWindows,
    *,
    is_past_day: bool,
) -> DayPairing:
    """Group one day's punches into at most one AM, one PM and one OT session.

    Rejected punches are dropped first. An in before the AM end is AM and one
    before the PM end is PM. On past days an unmatched in gets a recovered out
    at its shift's scheduled end.
    """

    ordered = sorted((p for p in punches if not p.is_rejected), key=lambda p: (p.timestamp_ms, p.punch_id or 0))
    regular = [p for p in ordered if not p.is_overtime]
    overtime = [p for p in ordered if p.is_overtime]

    slots: dict[ShiftLabel, Session] = {}
    extra: list[Session] = []

    for in_punch, out_punch in _regular_chains(regular):
        shift = shift_for_in(in_punch, windows)
        session = _close(in_punch, out_punch, shift, windows, is_past_day)
        if shift is not None and shift not in slots:
            slots[shift] = session
        else:
            extra.append(session)

    chain = _overtime_chain(overtime)
    if chain is not None:
        slots[ShiftLabel.OT] = _close(chain[0], chain[1], ShiftLabel.OT, windows, is_past_day)

    return DayPairing(
        work_date=windows.work_date,
        am=slots.get(ShiftLabel.AM),
        pm=slots.get(ShiftLabel.PM),
        ot=slots.get(ShiftLabel.OT),
        extra=tuple(extra),
    )


def map_sessions(pairing: DayPairing, fn) -> DayPairing:
    """Apply ``fn`` to every session (used to attach durations)."""

    def apply(s: Optional[Session]) -> Optional[Session]:
        return fn(s) if s is not None else None

    return replace(
        pairing,
        am=apply(pairing.am),
        pm=apply(pairing.pm),
        ot=apply(pairing.ot),
        extra=tuple(fn(s) for s in pairing.extra),
    )
