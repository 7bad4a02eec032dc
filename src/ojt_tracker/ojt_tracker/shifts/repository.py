from __future__ import annotations

from typing import Protocol, Sequence

from .model import Shift


class ShiftRepository(Protocol):
    def list_for_supervisor(self, supervisor_id: int) -> Sequence[Shift]:
        """Regular shift rows of a supervisor (dated override rows excluded)."""

        raise NotImplementedError
