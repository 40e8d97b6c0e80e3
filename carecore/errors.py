"""Failures raised by the visit lifecycle, execution workflow and repositories.

Every exception carries a human-readable message suitable for showing to the
person who triggered the operation. None of them are retried automatically.
"""


class CareflowError(Exception):
    """Base class for every error raised by carecore."""


class InvalidTransition(CareflowError):
    def __init__(self, current, target, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(
            message
            or f"Invalid visit status transition: {_value(current)} -> {_value(target)}"
        )


class TerminalStateViolation(InvalidTransition):
    def __init__(self, current, target):
        super().__init__(
            current,
            target,
            f"Visit is already {_value(current)}; it cannot move to {_value(target)}",
        )


class IllegalClockIn(CareflowError):
    def __init__(self, visit_id, status):
        self.visit_id = visit_id
        self.status = status
        super().__init__(
            f"Visit #{visit_id} cannot be started while {_value(status)}; "
            "only scheduled or confirmed visits can be clocked in"
        )


class IncompleteCareLog(CareflowError):
    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Add at least some activities performed or notes before completing the visit"
        )


class RepositoryError(CareflowError):
    """A store failure passed through unchanged: transport error or ``success: false``."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class CareLogPersistFailed(CareflowError):
    def __init__(self, visit_id, reason: str):
        self.visit_id = visit_id
        super().__init__(
            f"Care log for visit #{visit_id} was not saved ({reason}); "
            "the visit is still in progress, retry clock-out"
        )


class VisitCompletionFailed(CareflowError):
    """The care log was saved but the visit could not be marked completed."""

    def __init__(self, visit, care_log, reason: str):
        self.visit = visit
        self.care_log = care_log
        super().__init__(
            f"Care log #{care_log.log_id} was saved but visit #{visit.visit_id} "
            f"could not be marked completed ({reason}); reconcile the visit"
        )


def _value(status) -> str:
    return str(getattr(status, "value", status))
