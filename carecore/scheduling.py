from datetime import date, time

import structlog

from .config import settings
from .models import Priority, RecurrencePattern, Visit, VisitStatus, VisitType
from .repositories import VisitRepository

logger = structlog.get_logger("careflow.scheduling")


def build_visit(
    client_id: int | None,
    staff_id: int | None,
    visit_date: date | None,
    visit_time: time | None,
    *,
    estimated_duration: int | None = None,
    visit_type: VisitType | str = VisitType.ROUTINE,
    priority: Priority | str = Priority.NORMAL,
    service_type: str | None = None,
    is_recurring: bool = False,
    recurrence_pattern: RecurrencePattern | str | None = None,
    recurrence_end_date: date | None = None,
    special_instructions: str | None = None,
    notes: str | None = None,
) -> Visit:
    """Validate a new-visit form and return an unsaved, scheduled Visit.

    Raises ValueError with a message fit for the person filling the form.
    """
    if not client_id or not staff_id:
        raise ValueError("Please select a client and staff member")
    if visit_date is None or visit_time is None:
        raise ValueError("Visit date and time are required")

    duration = estimated_duration or settings.DEFAULT_ESTIMATED_DURATION
    if duration < 1:
        raise ValueError("Estimated duration must be at least one minute")

    if is_recurring:
        pattern = RecurrencePattern(recurrence_pattern or RecurrencePattern.WEEKLY)
        if recurrence_end_date is not None and recurrence_end_date < visit_date:
            raise ValueError("Recurrence end date cannot be before the visit date")
    else:
        pattern = None
        recurrence_end_date = None

    return Visit(
        client_id=client_id,
        staff_id=staff_id,
        visit_date=visit_date,
        visit_time=visit_time.replace(second=0, microsecond=0),
        estimated_duration=duration,
        visit_type=VisitType(visit_type),
        priority=Priority(priority),
        service_type=(service_type or "").strip() or None,
        is_recurring=is_recurring,
        recurrence_pattern=pattern,
        recurrence_end_date=recurrence_end_date,
        special_instructions=(special_instructions or "").strip() or None,
        notes=(notes or "").strip() or None,
        status=VisitStatus.SCHEDULED,
    )


async def schedule_visit(repository: VisitRepository, *args, **kwargs) -> Visit:
    visit = build_visit(*args, **kwargs)
    saved = await repository.create(visit)
    logger.info(
        "visit_scheduled",
        visit_id=saved.visit_id,
        client_id=saved.client_id,
        staff_id=saved.staff_id,
        visit_date=saved.visit_date.isoformat(),
    )
    return saved
