from datetime import date, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VisitStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    MISSED = "missed"


class VisitType(str, Enum):
    ROUTINE = "routine"
    URGENT = "urgent"
    FOLLOW_UP = "follow_up"
    ASSESSMENT = "assessment"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ClientMood(str, Enum):
    HAPPY = "happy"
    CALM = "calm"
    NEUTRAL = "neutral"
    ANXIOUS = "anxious"
    SAD = "sad"
    AGITATED = "agitated"


# Joined by the store for display; never sent back on writes.
READ_ONLY_FIELDS = {"client_name", "staff_name"}


class Visit(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    visit_id: int | None = None
    client_id: int
    staff_id: int
    visit_date: date
    visit_time: time
    estimated_duration: int = Field(default=60, ge=1)
    visit_type: VisitType = VisitType.ROUTINE
    priority: Priority = Priority.NORMAL
    service_type: str | None = None
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_end_date: date | None = None
    special_instructions: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    status: VisitStatus = VisitStatus.SCHEDULED
    client_name: str | None = None
    staff_name: str | None = None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude={"visit_id"} | READ_ONLY_FIELDS)


class CareLogDraft(BaseModel):
    """What the carer records during a visit; clock-out fills in the rest."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    personal_care: bool = False
    medication: bool = False
    meal_preparation: bool = False
    housekeeping: bool = False
    companionship: bool = False
    temperature: str | None = None
    blood_pressure: str | None = None
    heart_rate: str | None = None
    activities_performed: str | None = None
    client_mood: ClientMood | None = None
    notes: str | None = None
    concerns: str | None = None
    follow_up_required: bool = False
    follow_up_notes: str | None = None

    def has_narrative(self) -> bool:
        return bool((self.activities_performed or "").strip() or (self.notes or "").strip())


class CareLog(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    log_id: int | None = None
    client_id: int
    staff_id: int
    visit_id: int | None = None
    visit_date: date
    visit_time: time
    duration_minutes: int | None = Field(default=None, ge=0)
    visit_type: VisitType | None = None
    personal_care: bool = False
    medication: bool = False
    meal_preparation: bool = False
    housekeeping: bool = False
    companionship: bool = False
    temperature: str | None = None
    blood_pressure: str | None = None
    heart_rate: str | None = None
    activities_performed: str | None = None
    client_mood: ClientMood | None = None
    notes: str | None = None
    concerns: str | None = None
    follow_up_required: bool = False
    follow_up_notes: str | None = None
    client_name: str | None = None
    staff_name: str | None = None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude={"log_id"} | READ_ONLY_FIELDS)

    def to_update_payload(self) -> dict:
        # client, staff and date stay as recorded at creation
        return self.model_dump(
            mode="json",
            exclude={"log_id", "client_id", "staff_id", "visit_date", "visit_time"}
            | READ_ONLY_FIELDS,
        )


class VisitFilters(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: int | None = None
    staff_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: VisitStatus | None = None

    def to_params(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class CareLogFilters(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: int | None = None
    staff_id: int | None = None
    visit_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None
    follow_up_required: bool | None = None

    def to_params(self) -> dict:
        params = self.model_dump(mode="json", exclude_none=True)
        if "follow_up_required" in params:
            params["follow_up_required"] = "true" if params["follow_up_required"] else "false"
        return params


class DashboardSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    today_count: int = 0
    upcoming_count: int = 0
    completed_count: int = 0


class CareLogSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_count: int = 0
    today_count: int = 0
    follow_up_count: int = 0
