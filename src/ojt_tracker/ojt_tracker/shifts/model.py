from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Shift:
    """Domain entity: one of a supervisor's configured shift rows.

    ``official_start``/``official_end`` are normalized ``HH:MM`` or None.
    """

    shift_id: int
    supervisor_id: Optional[int]
    shift_name: str
    official_start: Optional[str]
    official_end: Optional[str]

    @property
    def name_key(self) -> str:
        return (self.shift_name or "").strip().lower()
