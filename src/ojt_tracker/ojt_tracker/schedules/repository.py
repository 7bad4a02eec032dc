from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import CoordinatorEvent, DatedOverride, OvertimeAuthorization, StudentSchedule


class ScheduleRepository(Protocol):
    """Read-only access to every schedule configuration source.

    Implementations raise ScheduleSourceError when a source cannot be read.
    """

    def list_events_for_date(self, event_date: date) -> Sequence[CoordinatorEvent]:
        raise NotImplementedError

    def get_student_schedule(self, student_id: int) -> Optional[StudentSchedule]:
        raise NotImplementedError

    def get_dated_override(self, *, supervisor_id: int, override_date: date) -> Optional[DatedOverride]:
        raise NotImplementedError

    def get_overtime_authorization(self, *, student_id: int, work_date: date) -> Optional[OvertimeAuthorization]:
        raise NotImplementedError
