from __future__ import annotations

from enum import Enum


class PunchType(str, Enum):
    IN = "in"
    OUT = "out"


class PunchStatus(str, Enum):
    """Approval state of a punch as stored by the capture workflow."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    OFFICIAL = "official"

    @classmethod
    def parse(cls, value: str | None) -> "PunchStatus":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.PENDING

    @property
    def is_validated(self) -> bool:
        return self in (PunchStatus.APPROVED, PunchStatus.OFFICIAL)


class Provenance(str, Enum):
    """Where a punch came from."""

    CAPTURED = "captured"
    # In-memory out for a past day with a forgotten time-out. Never persisted.
    RECOVERED = "recovered"
    # Persisted by the system when the student times in on a later day.
    AUTO_CLOSED = "auto_closed"


class ShiftLabel(str, Enum):
    AM = "am"
    PM = "pm"
    OT = "ot"


class ReasonCode(str, Enum):
    """Why a punch attempt was refused (or needs confirmation)."""

    NO_SCHEDULE = "NoSchedule"
    DUPLICATE_OR_OUT_OF_WINDOW = "DuplicateOrOutOfWindow"
    LATE_IN = "LateIn"
    AUTHORIZATION_WINDOW = "AuthorizationWindowError"
    NO_OPEN_SESSION = "NoOpenSession"
    EARLY_OUT_WARNING = "EarlyOutWarning"
    PHOTO_REQUIRED = "PhotoRequired"


class SessionFlag(str, Enum):
    MISSED_LUNCH_PUNCH = "MISSED_LUNCH_PUNCH"
    AUTO_CLOSED = "AUTO_CLOSED"
    RECOVERED = "RECOVERED"
