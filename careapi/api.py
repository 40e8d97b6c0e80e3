from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import get_db
from .models import CareLog, Client, Staff, Visit, VisitStatusEvent
from .schemas import (
    ApiEnvelope,
    CareLogCreate,
    CareLogOut,
    CareLogUpdate,
    ClientCreate,
    ClientOut,
    StaffCreate,
    StaffOut,
    VisitCreate,
    VisitOut,
    VisitStatusEventOut,
    VisitUpdate,
)
from .services import (
    VISIT_STATUSES,
    create_care_log,
    create_client,
    create_staff,
    create_visit,
    delete_care_log,
    delete_visit,
    get_care_log,
    get_visit,
    list_care_logs,
    list_clients,
    list_staff,
    list_visit_status_events,
    list_visits,
    update_care_log,
    update_visit,
)

router = APIRouter(prefix="/api/v1")


def _ok(data=None, message: str | None = None) -> dict:
    return ApiEnvelope(success=True, message=message, data=data).model_dump(mode="json")


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiEnvelope(success=False, message=message).model_dump(mode="json"),
    )


def _to_client_out(c: Client) -> dict:
    return ClientOut(client_id=c.id, name=c.name, care_level=c.care_level).model_dump(mode="json")


def _to_staff_out(s: Staff) -> dict:
    return StaffOut(staff_id=s.id, name=s.name, role_name=s.role_name).model_dump(mode="json")


def _to_visit_out(v: Visit) -> dict:
    return VisitOut(
        visit_id=v.id,
        client_id=v.client_id,
        staff_id=v.staff_id,
        visit_date=v.visit_date,
        visit_time=v.visit_time,
        estimated_duration=v.estimated_duration,
        visit_type=v.visit_type,
        priority=v.priority,
        service_type=v.service_type,
        is_recurring=bool(v.is_recurring),
        recurrence_pattern=v.recurrence_pattern,
        recurrence_end_date=v.recurrence_end_date,
        special_instructions=v.special_instructions,
        notes=v.notes,
        cancellation_reason=v.cancellation_reason,
        status=v.status,
        client_name=v.client.name if v.client else None,
        staff_name=v.staff.name if v.staff else None,
    ).model_dump(mode="json")


def _to_care_log_out(log: CareLog) -> dict:
    return CareLogOut(
        log_id=log.id,
        client_id=log.client_id,
        staff_id=log.staff_id,
        visit_id=log.visit_id,
        visit_date=log.visit_date,
        visit_time=log.visit_time,
        duration_minutes=log.duration_minutes,
        visit_type=log.visit_type,
        personal_care=bool(log.personal_care),
        medication=bool(log.medication),
        meal_preparation=bool(log.meal_preparation),
        housekeeping=bool(log.housekeeping),
        companionship=bool(log.companionship),
        temperature=log.temperature,
        blood_pressure=log.blood_pressure,
        heart_rate=log.heart_rate,
        activities_performed=log.activities_performed,
        client_mood=log.client_mood,
        notes=log.notes,
        concerns=log.concerns,
        follow_up_required=bool(log.follow_up_required),
        follow_up_notes=log.follow_up_notes,
        client_name=log.client.name if log.client else None,
        staff_name=log.staff.name if log.staff else None,
    ).model_dump(mode="json")


def _to_event_out(e: VisitStatusEvent) -> dict:
    return VisitStatusEventOut(
        id=e.id,
        visit_id=e.visit_id,
        from_status=e.from_status,
        to_status=e.to_status,
        note=e.note,
        created_at=e.created_at,
    ).model_dump(mode="json")


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _truncation_message(truncated: bool, shown: int, noun: str) -> str | None:
    if not truncated:
        return None
    return f"Showing the first {shown} {noun}; narrow the filters to see the rest"


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Validation failed: " + "; ".join(parts)


def install_envelope_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _fail(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _fail(422, _describe_validation_error(exc))


@router.post("/clients")
def add_client(payload: ClientCreate, db: Session = Depends(get_db)):
    client = create_client(db, name=payload.name, care_level=payload.care_level)
    return _ok({"client": _to_client_out(client)}, "Client created")


@router.get("/clients")
def get_clients(db: Session = Depends(get_db)):
    return _ok({"clients": [_to_client_out(c) for c in list_clients(db)]})


@router.post("/staff")
def add_staff(payload: StaffCreate, db: Session = Depends(get_db)):
    staff = create_staff(db, name=payload.name, role_name=payload.role_name)
    return _ok({"staff": _to_staff_out(staff)}, "Staff member created")


@router.get("/staff")
def get_staff(db: Session = Depends(get_db)):
    return _ok({"staff": [_to_staff_out(s) for s in list_staff(db)]})


@router.post("/visits")
def add_visit(payload: VisitCreate, db: Session = Depends(get_db)):
    try:
        visit = create_visit(db, payload.model_dump())
    except ValueError as exc:
        raise _bad_request(exc)
    return _ok({"visit": _to_visit_out(visit)}, "Visit scheduled")


@router.get("/visits")
def get_visits(
    client_id: Optional[int] = Query(default=None),
    staff_id: Optional[int] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    if status_filter and status_filter.strip().lower() not in VISIT_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status: {status_filter}",
        )
    visits, truncated = list_visits(
        db,
        client_id=client_id,
        staff_id=staff_id,
        start_date=start_date,
        end_date=end_date,
        status=status_filter,
        limit=limit,
    )
    return _ok(
        {"visits": [_to_visit_out(v) for v in visits], "truncated": truncated},
        _truncation_message(truncated, len(visits), "visits"),
    )


@router.get("/visits/{visit_id}")
def get_one_visit(visit_id: int, db: Session = Depends(get_db)):
    visit = get_visit(db, visit_id)
    if not visit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visit not found")
    return _ok({"visit": _to_visit_out(visit)})


@router.put("/visits/{visit_id}")
def put_visit(visit_id: int, payload: VisitUpdate, db: Session = Depends(get_db)):
    try:
        visit = update_visit(db, visit_id, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise _bad_request(exc)
    if not visit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visit not found")
    return _ok({"visit": _to_visit_out(visit)}, "Visit updated")


@router.delete("/visits/{visit_id}")
def remove_visit(visit_id: int, db: Session = Depends(get_db)):
    try:
        ok = delete_visit(db, visit_id)
    except ValueError as exc:
        raise _bad_request(exc)
    if not ok:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visit not found")
    return _ok(None, "Visit deleted")


@router.get("/visits/{visit_id}/history")
def visit_status_history(visit_id: int, db: Session = Depends(get_db)):
    if not get_visit(db, visit_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visit not found")
    rows = list_visit_status_events(db, visit_id)
    return _ok({"events": [_to_event_out(row) for row in rows]})


@router.post("/logs")
def add_care_log(payload: CareLogCreate, db: Session = Depends(get_db)):
    try:
        log = create_care_log(db, payload.model_dump())
    except ValueError as exc:
        raise _bad_request(exc)
    return _ok({"log": _to_care_log_out(log)}, "Care log saved")


@router.get("/logs")
def get_care_logs(
    client_id: Optional[int] = Query(default=None),
    staff_id: Optional[int] = Query(default=None),
    visit_id: Optional[int] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=120),
    follow_up_required: Optional[bool] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    logs, truncated = list_care_logs(
        db,
        client_id=client_id,
        staff_id=staff_id,
        visit_id=visit_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
        follow_up_required=follow_up_required,
        limit=limit,
    )
    return _ok(
        {"logs": [_to_care_log_out(log) for log in logs], "truncated": truncated},
        _truncation_message(truncated, len(logs), "care logs"),
    )


@router.get("/logs/{log_id}")
def get_one_care_log(log_id: int, db: Session = Depends(get_db)):
    log = get_care_log(db, log_id)
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Care log not found")
    return _ok({"log": _to_care_log_out(log)})


@router.put("/logs/{log_id}")
def put_care_log(log_id: int, payload: CareLogUpdate, db: Session = Depends(get_db)):
    try:
        log = update_care_log(db, log_id, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise _bad_request(exc)
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Care log not found")
    return _ok({"log": _to_care_log_out(log)}, "Care log updated")


@router.delete("/logs/{log_id}")
def remove_care_log(log_id: int, db: Session = Depends(get_db)):
    if not delete_care_log(db, log_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Care log not found")
    return _ok(None, "Care log deleted")
