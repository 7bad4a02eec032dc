from __future__ import annotations

from datetime import tzinfo
from typing import Optional

from ..common.datetime_utils import ms_to_hhmm
from .model import EffectiveSchedule, OvertimeAuthorization


def merge_overtime(
    schedule: Optional[EffectiveSchedule],
    authorization: Optional[OvertimeAuthorization],
    tz: tzinfo,
) -> Optional[EffectiveSchedule]:
    """Replace the OT sub-window with an authorization's window.

    An authorization outranks every configuration source, and creates a
    schedule on its own when nothing else resolved for the day.
    """

    if authorization is None:
        return schedule
    base = schedule or EffectiveSchedule()
    return base.with_overtime(
        ms_to_hhmm(authorization.start_ms, tz),
        ms_to_hhmm(authorization.end_ms, tz),
        authorized=True,
    )
