"""Dashboard counts and list filtering over already-fetched collections.

Nothing in this module talks to a repository except the ``refresh`` methods of
the list views; changing a filter only recomputes from memory.
"""

from datetime import date, timedelta
from typing import Iterable, Sequence, TypeVar

from .config import settings
from .models import (
    CareLog,
    CareLogFilters,
    CareLogSummary,
    DashboardSummary,
    Visit,
    VisitFilters,
    VisitStatus,
)
from .repositories import CareLogRepository, VisitRepository

ALL_STATUSES = "all"

Record = TypeVar("Record", Visit, CareLog)


def summarize(
    visits: Iterable[Visit],
    today: date | None = None,
    window_days: int | None = None,
) -> DashboardSummary:
    today = today or date.today()
    window = settings.UPCOMING_WINDOW_DAYS if window_days is None else window_days
    first_upcoming = today + timedelta(days=1)
    last_upcoming = today + timedelta(days=window)

    today_count = completed_count = upcoming_count = 0
    for visit in visits:
        if visit.visit_date == today:
            today_count += 1
            if visit.status == VisitStatus.COMPLETED:
                completed_count += 1
        elif first_upcoming <= visit.visit_date <= last_upcoming:
            upcoming_count += 1

    return DashboardSummary(
        today_count=today_count,
        upcoming_count=upcoming_count,
        completed_count=completed_count,
    )


def summarize_care_logs(logs: Iterable[CareLog], today: date | None = None) -> CareLogSummary:
    today = today or date.today()
    total = today_count = follow_up_count = 0
    for log in logs:
        total += 1
        if log.visit_date == today:
            today_count += 1
        if log.follow_up_required:
            follow_up_count += 1
    return CareLogSummary(
        total_count=total,
        today_count=today_count,
        follow_up_count=follow_up_count,
    )


def _matches_text(record: Visit | CareLog, needle: str) -> bool:
    haystacks = (record.client_name, record.staff_name, record.visit_date.isoformat())
    return any(needle in (value or "").lower() for value in haystacks)


def filter_by_text(records: Sequence[Record], query: str | None) -> list[Record]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(records)
    return [record for record in records if _matches_text(record, needle)]


def filter_by_status(visits: Sequence[Visit], status: VisitStatus | str | None) -> list[Visit]:
    if status is None or status == ALL_STATUSES:
        return list(visits)
    wanted = VisitStatus(status)
    return [visit for visit in visits if visit.status == wanted]


def apply_filters(
    visits: Sequence[Visit],
    query: str | None = None,
    status: VisitStatus | str | None = ALL_STATUSES,
) -> list[Visit]:
    return filter_by_text(filter_by_status(visits, status), query)


def order_by_schedule(visits: Iterable[Visit]) -> list[Visit]:
    return sorted(visits, key=lambda v: (v.visit_date, v.visit_time))


def visits_for_day(visits: Iterable[Visit], day: date) -> list[Visit]:
    return order_by_schedule(v for v in visits if v.visit_date == day)


def find_dangling_care_logs(logs: Iterable[CareLog], visits: Iterable[Visit]) -> list[CareLog]:
    """Care logs whose visit was fetched but is not marked completed."""
    status_by_visit = {v.visit_id: v.status for v in visits if v.visit_id is not None}
    return [
        log
        for log in logs
        if log.visit_id in status_by_visit
        and status_by_visit[log.visit_id] != VisitStatus.COMPLETED
    ]


class VisitListView:
    """A fetched visit list plus the search text and status button in effect."""

    def __init__(self, repository: VisitRepository, filters: VisitFilters | None = None):
        self._repository = repository
        self._filters = filters
        self._visits: list[Visit] = []
        self.query = ""
        self.status: VisitStatus | str = ALL_STATUSES
        self.items: list[Visit] = []

    @property
    def all_items(self) -> list[Visit]:
        return list(self._visits)

    async def refresh(self) -> list[Visit]:
        self._visits = await self._repository.list(self._filters)
        return self._recompute()

    def set_query(self, query: str) -> list[Visit]:
        self.query = query or ""
        return self._recompute()

    def set_status(self, status: VisitStatus | str) -> list[Visit]:
        self.status = status if status == ALL_STATUSES else VisitStatus(status)
        return self._recompute()

    def summary(self, today: date | None = None) -> DashboardSummary:
        return summarize(self._visits, today)

    def _recompute(self) -> list[Visit]:
        self.items = apply_filters(self._visits, self.query, self.status)
        return self.items


class CareLogListView:
    def __init__(self, repository: CareLogRepository, filters: CareLogFilters | None = None):
        self._repository = repository
        self._filters = filters
        self._logs: list[CareLog] = []
        self.query = ""
        self.items: list[CareLog] = []

    @property
    def all_items(self) -> list[CareLog]:
        return list(self._logs)

    async def refresh(self) -> list[CareLog]:
        self._logs = await self._repository.list(self._filters)
        return self.set_query(self.query)

    def set_query(self, query: str) -> list[CareLog]:
        self.query = query or ""
        self.items = filter_by_text(self._logs, self.query)
        return self.items

    def summary(self, today: date | None = None) -> CareLogSummary:
        """Counts over the visible (search-filtered) logs."""
        return summarize_care_logs(self.items, today)
