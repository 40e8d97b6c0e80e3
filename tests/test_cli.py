import httpx
import pytest
from fastapi.testclient import TestClient

from careapi.config import settings as store_settings
from carecore import cli

from conftest import make_app, seed_people


def _run(app, capsys, *argv):
    code = cli.main(
        ["--base-url", "http://testserver", *argv],
        transport=httpx.ASGITransport(app=app),
    )
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def test_schedule_clock_in_and_out(tmp_path, capsys):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))

    code, out, _ = _run(
        app,
        capsys,
        "schedule",
        "--client-id", str(client_id),
        "--staff-id", str(staff_id),
        "--date", "2026-03-02",
        "--time", "09:00",
    )
    assert code == 0
    assert "Scheduled visit #1" in out

    code, out, _ = _run(app, capsys, "clock-in", "1")
    assert code == 0
    assert "Clocked in to visit #1" in out

    code, out, _ = _run(
        app,
        capsys,
        "clock-out", "1",
        "--staff-id", str(staff_id),
        "--activities", "Bathing, medication",
        "--medication",
        "--follow-up", "Check blood pressure",
    )
    assert code == 0
    assert "Visit #1 completed" in out

    code, out, _ = _run(app, capsys, "logs", "--follow-up")
    assert code == 0
    assert "1 need follow-up" in out
    assert "Bathing, medication" in out

    code, out, _ = _run(app, capsys, "summary", "--date", "2026-03-02")
    assert code == 0
    assert "1 visits, 1 completed" in out


def test_clock_out_without_notes_fails(tmp_path, capsys):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))
    _run(app, capsys, "schedule", "--client-id", str(client_id), "--staff-id", str(staff_id),
         "--date", "2026-03-02", "--time", "09:00")
    _run(app, capsys, "clock-in", "1")

    code, out, err = _run(app, capsys, "clock-out", "1", "--staff-id", str(staff_id))
    assert code == 1
    assert "Error: Add at least some activities" in err


def test_visits_search_and_status(tmp_path, capsys):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))
    for day in ("2026-03-02", "2026-03-03"):
        _run(app, capsys, "schedule", "--client-id", str(client_id), "--staff-id", str(staff_id),
             "--date", day, "--time", "09:00")
    _run(app, capsys, "set-status", "2", "cancelled", "--reason", "Client away")

    code, out, _ = _run(app, capsys, "visits", "--status", "cancelled")
    assert code == 0
    assert "Visits: 1 of 2" in out
    assert "#2 2026-03-03 09:00" in out

    code, out, _ = _run(app, capsys, "visits", "--search", "2026-03-02")
    assert "Visits: 1 of 2" in out


def test_illegal_transition_exits_with_message(tmp_path, capsys):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))
    _run(app, capsys, "schedule", "--client-id", str(client_id), "--staff-id", str(staff_id),
         "--date", "2026-03-02", "--time", "09:00")

    code, _, err = _run(app, capsys, "reconcile", "1")
    assert code == 1
    assert "no saved care log" in err

    code, _, _ = _run(app, capsys, "set-status", "1", "cancelled", "--reason", "Client away")
    assert code == 0
    code, _, err = _run(app, capsys, "set-status", "1", "confirmed")
    assert code == 1
    assert "Visit is already cancelled; it cannot move to confirmed" in err


def test_set_status_cannot_complete_a_visit(tmp_path, capsys):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))
    _run(app, capsys, "schedule", "--client-id", str(client_id), "--staff-id", str(staff_id),
         "--date", "2026-03-02", "--time", "09:00")
    _run(app, capsys, "clock-in", "1")

    for status in ("completed", "in_progress"):
        with pytest.raises(SystemExit) as exc:
            _run(app, capsys, "set-status", "1", status)
        assert exc.value.code == 2

    code, out, _ = _run(app, capsys, "visits", "--status", "in_progress")
    assert "Visits: 1 of 1" in out


def test_clock_out_accepts_offset_start_time(tmp_path, capsys):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))
    _run(app, capsys, "schedule", "--client-id", str(client_id), "--staff-id", str(staff_id),
         "--date", "2026-03-02", "--time", "09:00")
    _run(app, capsys, "clock-in", "1")

    code, out, err = _run(
        app,
        capsys,
        "clock-out", "1",
        "--staff-id", str(staff_id),
        "--activities", "Bathing",
        "--started-at", "2026-03-02T09:00:00+00:00",
    )
    assert code == 0, err
    assert "Visit #1 completed" in out


def test_summary_sees_today_beyond_store_list_cap(tmp_path, capsys):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))
    for day in ("2026-02-01", "2026-02-02", "2026-02-03", "2026-03-10"):
        _run(app, capsys, "schedule", "--client-id", str(client_id), "--staff-id", str(staff_id),
             "--date", day, "--time", "09:00")

    previous_cap = int(store_settings.LIST_LIMIT_MAX)
    try:
        store_settings.LIST_LIMIT_MAX = 3
        code, out, _ = _run(app, capsys, "summary", "--date", "2026-03-10")
    finally:
        store_settings.LIST_LIMIT_MAX = previous_cap

    assert code == 0
    assert "Today 2026-03-10: 1 visits, 0 completed, 0 upcoming" in out
    assert "#4 2026-03-10 09:00" in out
