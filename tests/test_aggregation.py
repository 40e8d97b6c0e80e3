import asyncio
from datetime import date, time, timedelta

import pytest

from carecore.aggregation import (
    CareLogListView,
    VisitListView,
    apply_filters,
    filter_by_status,
    filter_by_text,
    find_dangling_care_logs,
    order_by_schedule,
    summarize,
    summarize_care_logs,
)
from carecore.models import CareLog, VisitStatus

from conftest import InMemoryCareLogRepository, InMemoryVisitRepository, make_visit

TODAY = date(2026, 3, 2)


def _ten_visits():
    day = timedelta(days=1)
    return [
        make_visit(1, VisitStatus.COMPLETED, TODAY),
        make_visit(2, VisitStatus.COMPLETED, TODAY, client_name="Jan Zielinski"),
        make_visit(3, VisitStatus.SCHEDULED, TODAY, staff_name="Kamila Wrobel"),
        make_visit(4, VisitStatus.SCHEDULED, TODAY + day),
        make_visit(5, VisitStatus.CONFIRMED, TODAY + 3 * day),
        make_visit(6, VisitStatus.CANCELLED, TODAY + 5 * day),
        make_visit(7, VisitStatus.SCHEDULED, TODAY + 7 * day),
        make_visit(8, VisitStatus.COMPLETED, TODAY - day),
        make_visit(9, VisitStatus.MISSED, TODAY - 2 * day),
        make_visit(10, VisitStatus.COMPLETED, TODAY - 10 * day),
    ]


def _log(log_id, visit_id=None, visit_date=TODAY, follow_up=False, **kwargs):
    fields = {
        "log_id": log_id,
        "client_id": 10,
        "staff_id": 20,
        "visit_id": visit_id,
        "visit_date": visit_date,
        "visit_time": time(10, 0),
        "follow_up_required": follow_up,
        "client_name": "Anna Kowalska",
        "staff_name": "Magda Nowak",
    }
    fields.update(kwargs)
    return CareLog(**fields)


def test_summarize_ten_visits():
    summary = summarize(_ten_visits(), TODAY)
    assert summary.today_count == 3
    assert summary.completed_count == 2
    assert summary.upcoming_count == 4


def test_summarize_window_excludes_day_eight():
    visits = [make_visit(1, visit_date=TODAY + timedelta(days=8))]
    assert summarize(visits, TODAY).upcoming_count == 0


def test_summarize_is_idempotent():
    visits = _ten_visits()
    assert summarize(visits, TODAY) == summarize(visits, TODAY)


def test_summarize_empty_collection():
    summary = summarize([], TODAY)
    assert (summary.today_count, summary.upcoming_count, summary.completed_count) == (0, 0, 0)


def test_blank_query_returns_input_unchanged():
    visits = _ten_visits()
    assert filter_by_text(visits, "") == visits
    assert filter_by_text(visits, "   ") == visits


def test_text_filter_matches_names_and_date_case_insensitive():
    visits = _ten_visits()
    assert [v.visit_id for v in filter_by_text(visits, "zielin")] == [2]
    assert [v.visit_id for v in filter_by_text(visits, "KAMILA")] == [3]
    by_date = filter_by_text(visits, (TODAY - timedelta(days=1)).isoformat())
    assert [v.visit_id for v in by_date] == [8]


def test_status_filter_and_all_sentinel():
    visits = _ten_visits()
    assert filter_by_status(visits, "all") == visits
    assert [v.visit_id for v in filter_by_status(visits, VisitStatus.MISSED)] == [9]
    assert len(filter_by_status(visits, "completed")) == 4


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError):
        filter_by_status(_ten_visits(), "finished")


def test_combined_filters_are_a_conjunction():
    visits = _ten_visits()
    result = apply_filters(visits, query="anna", status=VisitStatus.COMPLETED)
    assert [v.visit_id for v in result] == [1, 8, 10]


def test_order_by_schedule_is_stable():
    a = make_visit(1, visit_date=TODAY, visit_time=time(11, 0))
    b = make_visit(2, visit_date=TODAY, visit_time=time(9, 0))
    c = make_visit(3, visit_date=TODAY, visit_time=time(9, 0))
    d = make_visit(4, visit_date=TODAY - timedelta(days=1), visit_time=time(15, 0))
    assert [v.visit_id for v in order_by_schedule([a, b, c, d])] == [4, 2, 3, 1]


def test_summarize_care_logs():
    logs = [
        _log(1, follow_up=True),
        _log(2, visit_date=TODAY - timedelta(days=1)),
        _log(3, follow_up=True, visit_date=TODAY - timedelta(days=3)),
    ]
    summary = summarize_care_logs(logs, TODAY)
    assert summary.total_count == 3
    assert summary.today_count == 1
    assert summary.follow_up_count == 2


def test_find_dangling_care_logs():
    visits = [
        make_visit(1, VisitStatus.IN_PROGRESS),
        make_visit(2, VisitStatus.COMPLETED),
    ]
    logs = [_log(1, visit_id=1), _log(2, visit_id=2), _log(3, visit_id=None), _log(4, visit_id=99)]
    assert [log.log_id for log in find_dangling_care_logs(logs, visits)] == [1]


def test_visit_list_view_filters_without_refetching():
    repo = InMemoryVisitRepository(_ten_visits())
    view = VisitListView(repo)

    asyncio.run(view.refresh())
    assert repo.list_calls == 1
    assert len(view.items) == 10

    view.set_status(VisitStatus.COMPLETED)
    assert len(view.items) == 4
    view.set_query("zielinski")
    assert [v.visit_id for v in view.items] == [2]
    view.set_status("all")
    view.set_query("")
    assert len(view.items) == 10

    assert repo.list_calls == 1
    assert view.summary(TODAY).today_count == 3


def test_visit_list_view_keeps_filters_across_refresh():
    repo = InMemoryVisitRepository(_ten_visits())
    view = VisitListView(repo)
    view.set_status("missed")
    asyncio.run(view.refresh())
    assert [v.visit_id for v in view.items] == [9]
    assert len(view.all_items) == 10


def test_care_log_list_view_search():
    repo = InMemoryCareLogRepository()
    repo.rows = {
        1: _log(1),
        2: _log(2, staff_name="Kamila Wrobel", follow_up=True),
    }
    view = CareLogListView(repo)
    asyncio.run(view.refresh())
    view.set_query("kamila")
    assert [log.log_id for log in view.items] == [2]
    assert view.summary(TODAY).follow_up_count == 1
    assert repo.list_calls == 1
