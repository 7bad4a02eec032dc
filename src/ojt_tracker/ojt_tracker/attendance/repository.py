from __future__ import annotations

from typing import Protocol, Sequence

from .model import LedgerFreeze, NewPunch, PunchEvent


class AttendanceRepository(Protocol):
    def list_for_student(self, student_id: int) -> Sequence[PunchEvent]:
        """All punches of a student ordered by timestamp."""

        raise NotImplementedError

    def insert_punch(self, punch: NewPunch) -> int:
        """Persist a punch; returns the new punch id."""

        raise NotImplementedError

    def freeze(self, freeze: LedgerFreeze) -> bool:
        """Write frozen durations once.

        Returns False when the punch is missing or already frozen.
        """

        raise NotImplementedError
