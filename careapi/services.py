from datetime import date

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .config import settings
from .models import CareLog, Client, Staff, Visit, VisitStatusEvent, utc_now_naive

logger = structlog.get_logger("careflow.store")

VISIT_STATUSES = {
    "scheduled",
    "confirmed",
    "in_progress",
    "completed",
    "cancelled",
    "missed",
}
VISIT_TYPES = {"routine", "urgent", "follow_up", "assessment"}
PRIORITIES = {"low", "normal", "high", "urgent"}
RECURRENCE_PATTERNS = {"daily", "weekly", "monthly"}
CLIENT_MOODS = {"happy", "calm", "neutral", "anxious", "sad", "agitated"}

_VISIT_CHOICES = {
    "status": VISIT_STATUSES,
    "visit_type": VISIT_TYPES,
    "priority": PRIORITIES,
    "recurrence_pattern": RECURRENCE_PATTERNS,
}
_CARE_LOG_CHOICES = {
    "visit_type": VISIT_TYPES,
    "client_mood": CLIENT_MOODS,
}


def _normalize_choices(fields: dict, choices: dict[str, set[str]]) -> dict:
    normalized = dict(fields)
    for name, allowed in choices.items():
        value = normalized.get(name)
        if value is None:
            continue
        value = str(value).strip().lower()
        if value not in allowed:
            raise ValueError(f"Invalid {name}: {value}")
        normalized[name] = value
    return normalized


_VISIT_REQUIRED = (
    "client_id",
    "staff_id",
    "visit_date",
    "visit_time",
    "estimated_duration",
    "visit_type",
    "priority",
    "is_recurring",
    "status",
)
_CARE_LOG_REQUIRED = (
    "personal_care",
    "medication",
    "meal_preparation",
    "housekeeping",
    "companionship",
    "follow_up_required",
)


def _reject_cleared(values: dict, required: tuple[str, ...]) -> None:
    for name in required:
        if name in values and values[name] is None:
            raise ValueError(f"{name} cannot be empty")


def _require_client(db: Session, client_id: int) -> Client:
    client = db.get(Client, client_id)
    if not client:
        raise ValueError(f"Client #{client_id} does not exist")
    return client


def _require_staff(db: Session, staff_id: int) -> Staff:
    staff = db.get(Staff, staff_id)
    if not staff:
        raise ValueError(f"Staff member #{staff_id} does not exist")
    return staff


def _fetch_capped(db: Session, stmt, limit: int | None) -> tuple[list, bool]:
    """Run a list query capped at LIST_LIMIT_MAX; the flag says rows were left out."""
    cap = max(1, min(limit or settings.LIST_LIMIT_MAX, settings.LIST_LIMIT_MAX))
    rows = db.execute(stmt.limit(cap + 1)).scalars().all()
    truncated = len(rows) > cap
    if truncated:
        logger.warning("list_truncated", cap=cap, requested_limit=limit)
    return list(rows[:cap]), truncated


def create_client(db: Session, name: str, care_level: str | None = None) -> Client:
    client = Client(name=name.strip(), care_level=(care_level or "").strip() or None)
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def list_clients(db: Session) -> list[Client]:
    return db.execute(select(Client).order_by(Client.name.asc())).scalars().all()


def create_staff(db: Session, name: str, role_name: str | None = None) -> Staff:
    staff = Staff(name=name.strip(), role_name=(role_name or "").strip() or None)
    db.add(staff)
    db.commit()
    db.refresh(staff)
    return staff


def list_staff(db: Session) -> list[Staff]:
    return db.execute(select(Staff).order_by(Staff.name.asc())).scalars().all()


def add_visit_status_event(
    db: Session,
    visit_id: int,
    from_status: str | None,
    to_status: str,
    note: str | None = None,
) -> VisitStatusEvent:
    event = VisitStatusEvent(
        visit_id=visit_id,
        from_status=from_status,
        to_status=to_status,
        note=(note or "").strip() or None,
        created_at=utc_now_naive(),
    )
    db.add(event)
    db.flush()
    return event


def create_visit(db: Session, fields: dict) -> Visit:
    values = _normalize_choices(fields, _VISIT_CHOICES)
    _require_client(db, values["client_id"])
    _require_staff(db, values["staff_id"])
    if not values.get("estimated_duration"):
        values["estimated_duration"] = settings.DEFAULT_ESTIMATED_DURATION
    values.setdefault("status", "scheduled")

    visit = Visit(**values)
    db.add(visit)
    db.flush()
    add_visit_status_event(
        db=db,
        visit_id=visit.id,
        from_status=None,
        to_status=visit.status,
        note="created",
    )
    db.commit()
    db.refresh(visit)
    logger.info("visit_created", visit_id=visit.id, status=visit.status)
    return visit


def get_visit(db: Session, visit_id: int) -> Visit | None:
    return db.get(Visit, visit_id)


def list_visits(
    db: Session,
    client_id: int | None = None,
    staff_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
    limit: int | None = None,
) -> tuple[list[Visit], bool]:
    stmt = select(Visit)
    if client_id:
        stmt = stmt.where(Visit.client_id == client_id)
    if staff_id:
        stmt = stmt.where(Visit.staff_id == staff_id)
    if start_date:
        stmt = stmt.where(Visit.visit_date >= start_date)
    if end_date:
        stmt = stmt.where(Visit.visit_date <= end_date)
    if status:
        stmt = stmt.where(Visit.status == status.strip().lower())
    stmt = stmt.order_by(Visit.visit_date.asc(), Visit.visit_time.asc(), Visit.id.asc())
    return _fetch_capped(db, stmt, limit)


def update_visit(db: Session, visit_id: int, fields: dict) -> Visit | None:
    visit = db.get(Visit, visit_id)
    if not visit:
        return None

    values = _normalize_choices(fields, _VISIT_CHOICES)
    if values.get("client_id"):
        _require_client(db, values["client_id"])
    if values.get("staff_id"):
        _require_staff(db, values["staff_id"])

    _reject_cleared(values, _VISIT_REQUIRED)

    visit_date = values.get("visit_date") or visit.visit_date
    end_date = values.get("recurrence_end_date", visit.recurrence_end_date)
    if end_date and end_date < visit_date:
        raise ValueError("recurrence_end_date cannot be before visit_date")

    previous_status = visit.status
    for name, value in values.items():
        setattr(visit, name, value)

    if visit.status != previous_status:
        add_visit_status_event(
            db=db,
            visit_id=visit.id,
            from_status=previous_status,
            to_status=visit.status,
            note=visit.cancellation_reason if visit.status in {"cancelled", "missed"} else None,
        )
        logger.info(
            "visit_status_changed",
            visit_id=visit.id,
            from_status=previous_status,
            to_status=visit.status,
        )

    db.commit()
    db.refresh(visit)
    return visit


def delete_visit(db: Session, visit_id: int) -> bool:
    visit = db.get(Visit, visit_id)
    if not visit:
        return False
    referenced = db.execute(
        select(CareLog.id).where(CareLog.visit_id == visit_id).limit(1)
    ).first()
    if referenced:
        raise ValueError("Visit is referenced by a care log and cannot be deleted")
    for event in db.execute(
        select(VisitStatusEvent).where(VisitStatusEvent.visit_id == visit_id)
    ).scalars():
        db.delete(event)
    db.delete(visit)
    db.commit()
    return True


def list_visit_status_events(db: Session, visit_id: int) -> list[VisitStatusEvent]:
    stmt = (
        select(VisitStatusEvent)
        .where(VisitStatusEvent.visit_id == visit_id)
        .order_by(VisitStatusEvent.created_at.asc(), VisitStatusEvent.id.asc())
    )
    return db.execute(stmt).scalars().all()


def create_care_log(db: Session, fields: dict) -> CareLog:
    values = _normalize_choices(fields, _CARE_LOG_CHOICES)
    _require_client(db, values["client_id"])
    _require_staff(db, values["staff_id"])
    if values.get("visit_id") and not db.get(Visit, values["visit_id"]):
        raise ValueError(f"Visit #{values['visit_id']} does not exist")

    log = CareLog(**values)
    db.add(log)
    db.commit()
    db.refresh(log)
    logger.info("care_log_created", log_id=log.id, visit_id=log.visit_id)
    return log


def get_care_log(db: Session, log_id: int) -> CareLog | None:
    return db.get(CareLog, log_id)


def list_care_logs(
    db: Session,
    client_id: int | None = None,
    staff_id: int | None = None,
    visit_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
    follow_up_required: bool | None = None,
    limit: int | None = None,
) -> tuple[list[CareLog], bool]:
    stmt = select(CareLog)
    if client_id:
        stmt = stmt.where(CareLog.client_id == client_id)
    if staff_id:
        stmt = stmt.where(CareLog.staff_id == staff_id)
    if visit_id:
        stmt = stmt.where(CareLog.visit_id == visit_id)
    if start_date:
        stmt = stmt.where(CareLog.visit_date >= start_date)
    if end_date:
        stmt = stmt.where(CareLog.visit_date <= end_date)
    if follow_up_required is not None:
        stmt = stmt.where(CareLog.follow_up_required == follow_up_required)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        stmt = (
            stmt.join(CareLog.client)
            .join(CareLog.staff)
            .where(
                or_(
                    Client.name.ilike(pattern),
                    Staff.name.ilike(pattern),
                    CareLog.activities_performed.ilike(pattern),
                    CareLog.notes.ilike(pattern),
                )
            )
        )
    stmt = stmt.order_by(CareLog.visit_date.desc(), CareLog.visit_time.desc(), CareLog.id.desc())
    return _fetch_capped(db, stmt, limit)


def update_care_log(db: Session, log_id: int, fields: dict) -> CareLog | None:
    log = db.get(CareLog, log_id)
    if not log:
        return None
    values = _normalize_choices(fields, _CARE_LOG_CHOICES)
    _reject_cleared(values, _CARE_LOG_REQUIRED)
    if values.get("visit_id") and not db.get(Visit, values["visit_id"]):
        raise ValueError(f"Visit #{values['visit_id']} does not exist")
    for name, value in values.items():
        setattr(log, name, value)
    db.commit()
    db.refresh(log)
    return log


def delete_care_log(db: Session, log_id: int) -> bool:
    log = db.get(CareLog, log_id)
    if not log:
        return False
    db.delete(log)
    db.commit()
    return True
