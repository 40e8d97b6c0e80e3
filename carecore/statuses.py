"""Visit lifecycle.

scheduled -> confirmed -> in_progress -> completed, with cancelled and missed
as early exits. completed, cancelled and missed are terminal. Nothing here
touches a repository: callers persist the returned visit themselves.
"""

from .errors import InvalidTransition, TerminalStateViolation
from .models import Visit, VisitStatus

ALLOWED_VISIT_STATUS_TRANSITIONS: dict[VisitStatus, frozenset[VisitStatus]] = {
    VisitStatus.SCHEDULED: frozenset(
        {
            VisitStatus.CONFIRMED,
            VisitStatus.IN_PROGRESS,
            VisitStatus.CANCELLED,
            VisitStatus.MISSED,
        }
    ),
    VisitStatus.CONFIRMED: frozenset(
        {VisitStatus.IN_PROGRESS, VisitStatus.CANCELLED, VisitStatus.MISSED}
    ),
    VisitStatus.IN_PROGRESS: frozenset({VisitStatus.COMPLETED}),
    VisitStatus.COMPLETED: frozenset(),
    VisitStatus.CANCELLED: frozenset(),
    VisitStatus.MISSED: frozenset(),
}

CLOCK_IN_STATUSES = frozenset({VisitStatus.SCHEDULED, VisitStatus.CONFIRMED})
REASON_STATUSES = frozenset({VisitStatus.CANCELLED, VisitStatus.MISSED})


def allowed_targets(status: VisitStatus) -> frozenset[VisitStatus]:
    return ALLOWED_VISIT_STATUS_TRANSITIONS[VisitStatus(status)]


def is_terminal(status: VisitStatus) -> bool:
    return not allowed_targets(status)


def can_transition(status: VisitStatus, target: VisitStatus) -> bool:
    return VisitStatus(target) in allowed_targets(status)


def ensure_transition(status: VisitStatus, target: VisitStatus) -> None:
    current = VisitStatus(status)
    target = VisitStatus(target)
    if is_terminal(current):
        raise TerminalStateViolation(current, target)
    if target not in allowed_targets(current):
        raise InvalidTransition(current, target)


def transition(visit: Visit, new_status: VisitStatus, reason: str | None = None) -> Visit:
    """Return a copy of ``visit`` moved to ``new_status``.

    ``reason`` is recorded as the cancellation reason when the visit is being
    cancelled or marked missed and ignored otherwise. An empty reason is
    accepted.
    """
    target = VisitStatus(new_status)
    ensure_transition(visit.status, target)

    changes: dict = {"status": target}
    if target in REASON_STATUSES and reason is not None:
        changes["cancellation_reason"] = reason.strip() or None
    return visit.model_copy(update=changes)
