import argparse
import asyncio
import logging
import sys
from datetime import date, datetime, time, timedelta

import httpx
import structlog

from .aggregation import (
    ALL_STATUSES,
    CareLogListView,
    VisitListView,
    order_by_schedule,
    visits_for_day,
)
from .api import ApiClient
from .config import settings
from .errors import CareflowError
from .execution import VisitExecution
from .models import (
    CareLog,
    CareLogDraft,
    CareLogFilters,
    ClientMood,
    Priority,
    RecurrencePattern,
    Visit,
    VisitFilters,
    VisitStatus,
    VisitType,
)
from .repositories import HttpCareLogRepository, HttpVisitRepository
from .scheduling import schedule_visit
from .statuses import transition

STATUS_CHOICES = [ALL_STATUSES] + [s.value for s in VisitStatus]
# in_progress and completed are reached only through clock-in, clock-out and reconcile
MANUAL_STATUSES = [
    VisitStatus.CONFIRMED.value,
    VisitStatus.CANCELLED.value,
    VisitStatus.MISSED.value,
]


def _setup_logging():
    # stdout carries command output; structured logs go to stderr
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _visit_line(visit: Visit) -> str:
    client = (visit.client_name or "").strip() or f"client {visit.client_id}"
    staff = (visit.staff_name or "").strip() or f"staff {visit.staff_id}"
    return (
        f"- #{visit.visit_id} {visit.visit_date.isoformat()} {visit.visit_time.strftime('%H:%M')}"
        f" | {client} | {staff} | {visit.status.value} ({visit.estimated_duration}m)"
    )


def _log_line(log: CareLog) -> str:
    client = (log.client_name or "").strip() or f"client {log.client_id}"
    staff = (log.staff_name or "").strip() or f"staff {log.staff_id}"
    summary = (log.activities_performed or log.notes or "").strip().splitlines()
    follow_up = " | follow-up" if log.follow_up_required else ""
    duration = f"{log.duration_minutes}m" if log.duration_minutes is not None else "-"
    return (
        f"- #{log.log_id} {log.visit_date.isoformat()} {log.visit_time.strftime('%H:%M')}"
        f" | {client} | {staff} | {duration}{follow_up}"
        + (f"\n    {summary[0]}" if summary else "")
    )


def render_visits(visits: list[Visit], title: str) -> str:
    lines = [title, ""]
    if not visits:
        lines.append("No visits.")
        return "\n".join(lines)
    lines.extend(_visit_line(v) for v in order_by_schedule(visits))
    return "\n".join(lines)


def render_care_logs(logs: list[CareLog], title: str) -> str:
    lines = [title, ""]
    if not logs:
        lines.append("No care logs.")
        return "\n".join(lines)
    lines.extend(_log_line(log) for log in logs)
    return "\n".join(lines)


def _acting_staff_id(args) -> int:
    staff_id = args.staff_id if args.staff_id is not None else settings.STAFF_ID
    if staff_id is None:
        raise ValueError("Pass --staff-id or set CAREFLOW_STAFF_ID")
    return staff_id


async def cmd_summary(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    day = args.date or date.today()
    # only today and the upcoming window; the store caps unbounded lists
    filters = VisitFilters(
        staff_id=args.staff_id,
        start_date=day,
        end_date=day + timedelta(days=settings.UPCOMING_WINDOW_DAYS),
    )
    view = VisitListView(visits, filters)
    await view.refresh()
    summary = view.summary(day)
    header = (
        f"Today {day.isoformat()}: {summary.today_count} visits, "
        f"{summary.completed_count} completed, {summary.upcoming_count} upcoming"
    )
    return render_visits(visits_for_day(view.all_items, day), header)


async def cmd_visits(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    filters = VisitFilters(
        client_id=args.client_id,
        staff_id=args.staff_id,
        start_date=args.start_date,
        end_date=args.end_date,
    )
    view = VisitListView(visits, filters)
    await view.refresh()
    view.set_status(args.status)
    items = view.set_query(args.search or "")
    return render_visits(items, f"Visits: {len(items)} of {len(view.all_items)}")


async def cmd_logs(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    filters = CareLogFilters(
        client_id=args.client_id,
        staff_id=args.staff_id,
        visit_id=args.visit_id,
        start_date=args.start_date,
        end_date=args.end_date,
        follow_up_required=True if args.follow_up else None,
    )
    view = CareLogListView(logs, filters)
    await view.refresh()
    items = view.set_query(args.search or "")
    summary = view.summary()
    header = (
        f"Care logs: {summary.total_count} total, {summary.today_count} today, "
        f"{summary.follow_up_count} need follow-up"
    )
    return render_care_logs(items, header)


async def cmd_schedule(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    visit = await schedule_visit(
        visits,
        args.client_id,
        args.staff_id,
        args.date,
        args.time,
        estimated_duration=args.duration,
        visit_type=args.visit_type,
        priority=args.priority,
        service_type=args.service_type,
        is_recurring=args.recurrence is not None,
        recurrence_pattern=args.recurrence,
        recurrence_end_date=args.until,
        special_instructions=args.instructions,
        notes=args.notes,
    )
    return f"Scheduled visit #{visit.visit_id}\n{_visit_line(visit)}"


async def cmd_set_status(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    visit = await visits.get(args.visit_id)
    updated = transition(visit, VisitStatus(args.status), reason=args.reason)
    saved = await visits.update(args.visit_id, updated)
    return f"Visit #{saved.visit_id} is now {saved.status.value}"


async def cmd_clock_in(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    visit = await visits.get(args.visit_id)
    session = await VisitExecution(visits, logs).clock_in(visit)
    started = session.start_time.isoformat(timespec="seconds")
    return f"Clocked in to visit #{session.visit.visit_id} at {started}"


def _draft_from_args(args) -> CareLogDraft:
    return CareLogDraft(
        personal_care=args.personal_care,
        medication=args.medication,
        meal_preparation=args.meal_preparation,
        housekeeping=args.housekeeping,
        companionship=args.companionship,
        temperature=args.temperature,
        blood_pressure=args.blood_pressure,
        heart_rate=args.heart_rate,
        activities_performed=args.activities,
        client_mood=args.mood,
        notes=args.notes,
        concerns=args.concerns,
        follow_up_required=args.follow_up is not None,
        follow_up_notes=args.follow_up or None,
    )


async def cmd_clock_out(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    staff_id = _acting_staff_id(args)
    draft = _draft_from_args(args)
    visit = await visits.get(args.visit_id)
    result = await VisitExecution(visits, logs).clock_out(
        visit, draft, staff_id=staff_id, start_time=args.started_at
    )
    return (
        f"Visit #{result.visit.visit_id} completed; "
        f"care log #{result.care_log.log_id} saved ({result.care_log.duration_minutes}m)"
    )


async def cmd_reconcile(args, visits: HttpVisitRepository, logs: HttpCareLogRepository) -> str:
    visit = await VisitExecution(visits, logs).reconcile(args.visit_id)
    return f"Visit #{visit.visit_id} is {visit.status.value}"


def _add_list_filters(parser: argparse.ArgumentParser):
    parser.add_argument("--client-id", type=int)
    parser.add_argument("--staff-id", type=int)
    parser.add_argument("--from", dest="start_date", type=date.fromisoformat)
    parser.add_argument("--to", dest="end_date", type=date.fromisoformat)
    parser.add_argument("--search", default="")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="careflow", description="Home-care visit scheduling")
    parser.add_argument("--base-url", default=None, help="store URL (CAREFLOW_API_BASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("summary", help="dashboard counts and today's visits")
    p.add_argument("--date", type=date.fromisoformat)
    p.add_argument("--staff-id", type=int)
    p.set_defaults(handler=cmd_summary)

    p = sub.add_parser("visits", help="list visits")
    _add_list_filters(p)
    p.add_argument("--status", choices=STATUS_CHOICES, default=ALL_STATUSES)
    p.set_defaults(handler=cmd_visits)

    p = sub.add_parser("logs", help="list care logs")
    _add_list_filters(p)
    p.add_argument("--visit-id", type=int)
    p.add_argument("--follow-up", action="store_true")
    p.set_defaults(handler=cmd_logs)

    p = sub.add_parser("schedule", help="schedule a new visit")
    p.add_argument("--client-id", type=int, required=True)
    p.add_argument("--staff-id", type=int, required=True)
    p.add_argument("--date", type=date.fromisoformat, required=True)
    p.add_argument("--time", type=time.fromisoformat, required=True)
    p.add_argument("--duration", type=int)
    p.add_argument(
        "--type",
        dest="visit_type",
        choices=[t.value for t in VisitType],
        default=VisitType.ROUTINE.value,
    )
    p.add_argument("--priority", choices=[x.value for x in Priority], default=Priority.NORMAL.value)
    p.add_argument("--service-type")
    p.add_argument("--recurrence", choices=[r.value for r in RecurrencePattern])
    p.add_argument("--until", type=date.fromisoformat)
    p.add_argument("--instructions")
    p.add_argument("--notes")
    p.set_defaults(handler=cmd_schedule)

    p = sub.add_parser("set-status", help="confirm, cancel or mark a visit missed")
    p.add_argument("visit_id", type=int)
    p.add_argument("status", choices=MANUAL_STATUSES)
    p.add_argument("--reason")
    p.set_defaults(handler=cmd_set_status)

    p = sub.add_parser("clock-in", help="start a scheduled or confirmed visit")
    p.add_argument("visit_id", type=int)
    p.set_defaults(handler=cmd_clock_in)

    p = sub.add_parser("clock-out", help="record the care log and complete the visit")
    p.add_argument("visit_id", type=int)
    p.add_argument("--staff-id", type=int)
    p.add_argument("--started-at", type=datetime.fromisoformat)
    p.add_argument("--activities")
    p.add_argument("--notes")
    p.add_argument("--concerns")
    p.add_argument("--mood", choices=[m.value for m in ClientMood])
    p.add_argument("--temperature")
    p.add_argument("--blood-pressure")
    p.add_argument("--heart-rate")
    p.add_argument("--follow-up", nargs="?", const="", metavar="NOTES")
    for flag in ("personal-care", "medication", "meal-preparation", "housekeeping", "companionship"):
        p.add_argument(f"--{flag}", action="store_true")
    p.set_defaults(handler=cmd_clock_out)

    p = sub.add_parser("reconcile", help="complete a visit whose care log was already saved")
    p.add_argument("visit_id", type=int)
    p.set_defaults(handler=cmd_reconcile)

    return parser


async def _run(args, transport: httpx.AsyncBaseTransport | None) -> str:
    async with ApiClient(base_url=args.base_url, transport=transport) as api:
        visits = HttpVisitRepository(api)
        logs = HttpCareLogRepository(api)
        return await args.handler(args, visits, logs)


def main(argv: list[str] | None = None, transport: httpx.AsyncBaseTransport | None = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging()
    try:
        output = asyncio.run(_run(args, transport))
    except (CareflowError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
