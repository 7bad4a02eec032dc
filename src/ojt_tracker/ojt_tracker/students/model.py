from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.constants import DEFAULT_TARGET_HOURS


@dataclass(frozen=True)
class Student:
    """Domain entity: an OJT student as seen by the hours engine.

    Note: Only the fields the engine needs (course for event scoping,
    supervisor for shift defaults, target hours for progress).
    """

    student_id: int
    course_id: Optional[int]
    supervisor_id: Optional[int]
    target_hours: float = DEFAULT_TARGET_HOURS
