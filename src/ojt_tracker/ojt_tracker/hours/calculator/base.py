from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional

from ...attendance.model import Session
from ...schedules.windows import DayWindows


class DurationCalculator(ABC):
    """Calculator interface (Strategy Pattern for session durations)."""

    @abstractmethod
    def measure(self, session: Session, windows: DayWindows) -> Session:
        """Return ``session`` with duration fields filled in."""

        raise NotImplementedError

    @staticmethod
    def is_validated(session: Session) -> bool:
        """Validated hours need both ends approved (or official)."""

        return (
            session.out_punch is not None
            and session.in_punch.status.is_validated
            and session.out_punch.status.is_validated
        )

    def frozen(self, session: Session) -> Optional[Session]:
        """Ledger values on the out punch win over any recomputation."""

        out = session.out_punch
        if out is None or out.frozen_rendered_ms is None:
            return None

        rendered = int(out.frozen_rendered_ms)
        if out.frozen_validated_ms is not None:
            validated = int(out.frozen_validated_ms)
        else:
            validated = rendered if self.is_validated(session) else 0
        breakdown = ((session.shift, rendered),) if session.shift is not None else ()
        return replace(session, duration_ms=rendered, validated_duration_ms=validated, breakdown=breakdown)
