"""Clock-in / clock-out of a visit and the care log it produces.

Clock-out performs two writes without a transaction: the care log is saved
first, then the visit is marked completed. If the second write fails the care
log is kept and :class:`VisitCompletionFailed` is raised; ``reconcile`` later
re-runs only the visit completion.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import structlog

from .config import settings
from .errors import (
    CareLogPersistFailed,
    IllegalClockIn,
    IncompleteCareLog,
    RepositoryError,
    VisitCompletionFailed,
)
from .models import CareLog, CareLogDraft, CareLogFilters, Visit, VisitStatus
from .repositories import CareLogRepository, VisitRepository
from .statuses import CLOCK_IN_STATUSES, ensure_transition, transition

logger = structlog.get_logger("careflow.execution")


@dataclass(frozen=True)
class ExecutionSession:
    visit: Visit
    start_time: datetime | None


@dataclass(frozen=True)
class ClockOutResult:
    visit: Visit
    care_log: CareLog


def _local_naive(moment: datetime) -> datetime:
    # aware values are converted to local wall-clock time, naive ones are taken as local
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def compute_duration(
    start_time: datetime | None,
    end_time: datetime,
    estimated_duration: int | None,
) -> int:
    """Whole minutes between clock-in and clock-out, rounded half up.

    Falls back to the visit's estimated duration when the start time is
    unknown or the elapsed time is not positive (clock skew).
    """
    fallback = int(estimated_duration or settings.DEFAULT_ESTIMATED_DURATION)
    if start_time is None:
        return fallback
    elapsed = _local_naive(end_time) - _local_naive(start_time)
    minutes = math.floor(elapsed.total_seconds() / 60 + 0.5)
    if minutes <= 0:
        return fallback
    return int(minutes)


def build_care_log(
    visit: Visit,
    draft: CareLogDraft,
    staff_id: int,
    duration_minutes: int,
    logged_at: datetime,
) -> CareLog:
    return CareLog(
        client_id=visit.client_id,
        staff_id=staff_id,
        visit_id=visit.visit_id,
        visit_date=logged_at.date(),
        visit_time=logged_at.time().replace(microsecond=0),
        duration_minutes=duration_minutes,
        visit_type=visit.visit_type,
        **draft.model_dump(),
    )


def _require_saved(visit: Visit) -> int:
    if visit.visit_id is None:
        raise ValueError("Visit has not been saved yet")
    return visit.visit_id


class VisitExecution:
    def __init__(
        self,
        visits: VisitRepository,
        care_logs: CareLogRepository,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._visits = visits
        self._care_logs = care_logs
        self._clock = clock

    async def clock_in(self, visit: Visit) -> ExecutionSession:
        visit_id = _require_saved(visit)
        if visit.status not in CLOCK_IN_STATUSES:
            raise IllegalClockIn(visit_id, visit.status)

        started = transition(visit, VisitStatus.IN_PROGRESS)
        saved = await self._visits.update(visit_id, started)
        start_time = self._clock()
        logger.info("visit_clocked_in", visit_id=visit_id, staff_id=visit.staff_id)
        return ExecutionSession(visit=saved, start_time=start_time)

    def resume(self, visit: Visit) -> ExecutionSession:
        """Pick up a visit that was already in progress when it was loaded.

        The clock-in time was not kept, so clock-out will use the
        estimated duration.
        """
        _require_saved(visit)
        ensure_transition(visit.status, VisitStatus.COMPLETED)
        return ExecutionSession(visit=visit, start_time=None)

    async def clock_out(
        self,
        visit: Visit,
        draft: CareLogDraft,
        *,
        staff_id: int,
        start_time: datetime | None = None,
    ) -> ClockOutResult:
        visit_id = _require_saved(visit)
        ensure_transition(visit.status, VisitStatus.COMPLETED)
        if not draft.has_narrative():
            raise IncompleteCareLog()

        ended_at = self._clock()
        duration = compute_duration(start_time, ended_at, visit.estimated_duration)
        care_log = build_care_log(visit, draft, staff_id, duration, ended_at)

        try:
            saved_log = await self._care_logs.create(care_log)
        except RepositoryError as exc:
            logger.warning("care_log_persist_failed", visit_id=visit_id, error=str(exc))
            raise CareLogPersistFailed(visit_id, str(exc)) from exc
        logger.info(
            "care_log_saved",
            visit_id=visit_id,
            log_id=saved_log.log_id,
            duration_minutes=duration,
        )

        completed = transition(visit, VisitStatus.COMPLETED)
        try:
            saved_visit = await self._visits.update(visit_id, completed)
        except RepositoryError as exc:
            logger.error(
                "visit_completion_failed",
                visit_id=visit_id,
                log_id=saved_log.log_id,
                error=str(exc),
            )
            raise VisitCompletionFailed(visit, saved_log, str(exc)) from exc

        logger.info("visit_completed", visit_id=visit_id, staff_id=staff_id)
        return ClockOutResult(visit=saved_visit, care_log=saved_log)

    async def clock_out_session(
        self, session: ExecutionSession, draft: CareLogDraft, *, staff_id: int
    ) -> ClockOutResult:
        return await self.clock_out(
            session.visit, draft, staff_id=staff_id, start_time=session.start_time
        )

    async def reconcile(self, visit_id: int) -> Visit:
        """Finish a visit whose care log was saved but whose completion was not.

        Only the visit transition is retried; no care log is created.
        """
        visit = await self._visits.get(visit_id)
        if visit.status == VisitStatus.COMPLETED:
            return visit

        logs = await self._care_logs.list(CareLogFilters(visit_id=visit_id))
        if not logs:
            raise IncompleteCareLog(
                f"Visit #{visit_id} has no saved care log; clock out instead of reconciling"
            )

        completed = transition(visit, VisitStatus.COMPLETED)
        try:
            saved = await self._visits.update(visit_id, completed)
        except RepositoryError as exc:
            logger.error("visit_reconcile_failed", visit_id=visit_id, error=str(exc))
            raise VisitCompletionFailed(visit, logs[0], str(exc)) from exc
        logger.info("visit_reconciled", visit_id=visit_id, log_id=logs[0].log_id)
        return saved
