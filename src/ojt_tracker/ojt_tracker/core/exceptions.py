class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class ScheduleSourceError(DomainError):
    """Raised when a configuration source (events, shifts, overrides) cannot be read."""


class PunchRejected(DomainError):
    """Raised when a time-in/time-out submission is refused by the gate.

    The decision carries the reason code and the user-facing message.
    """

    def __init__(self, decision):
        super().__init__(decision.message)
        self.decision = decision
