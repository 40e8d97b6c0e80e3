from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ApiEnvelope(BaseModel):
    success: bool
    message: str | None = None
    data: Any = None


class ClientCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=120)
    care_level: str | None = Field(default=None, max_length=32)


class ClientOut(BaseModel):
    client_id: int
    name: str
    care_level: str | None = None


class StaffCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=120)
    role_name: str | None = Field(default=None, max_length=64)


class StaffOut(BaseModel):
    staff_id: int
    name: str
    role_name: str | None = None


class VisitCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: int = Field(gt=0)
    staff_id: int = Field(gt=0)
    visit_date: date
    visit_time: time
    estimated_duration: int = Field(default=60, ge=1, le=1440)
    visit_type: str = "routine"
    priority: str = "normal"
    service_type: str | None = Field(default=None, max_length=120)
    is_recurring: bool = False
    recurrence_pattern: str | None = None
    recurrence_end_date: date | None = None
    special_instructions: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    status: str = "scheduled"

    @model_validator(mode="after")
    def validate_recurrence(self):
        if self.is_recurring and not self.recurrence_pattern:
            raise ValueError("recurrence_pattern is required for recurring visits")
        if self.recurrence_end_date and self.recurrence_end_date < self.visit_date:
            raise ValueError("recurrence_end_date cannot be before visit_date")
        return self


class VisitUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: int | None = Field(default=None, gt=0)
    staff_id: int | None = Field(default=None, gt=0)
    visit_date: date | None = None
    visit_time: time | None = None
    estimated_duration: int | None = Field(default=None, ge=1, le=1440)
    visit_type: str | None = None
    priority: str | None = None
    service_type: str | None = Field(default=None, max_length=120)
    is_recurring: bool | None = None
    recurrence_pattern: str | None = None
    recurrence_end_date: date | None = None
    special_instructions: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    status: str | None = None


class VisitOut(BaseModel):
    visit_id: int
    client_id: int
    staff_id: int
    visit_date: date
    visit_time: time
    estimated_duration: int
    visit_type: str
    priority: str
    service_type: str | None = None
    is_recurring: bool = False
    recurrence_pattern: str | None = None
    recurrence_end_date: date | None = None
    special_instructions: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    status: str
    client_name: str | None = None
    staff_name: str | None = None


class VisitStatusEventOut(BaseModel):
    id: int
    visit_id: int
    from_status: str | None = None
    to_status: str
    note: str | None = None
    created_at: datetime


class _CareLogFields(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration_minutes: int | None = Field(default=None, ge=0)
    visit_type: str | None = None
    personal_care: bool = False
    medication: bool = False
    meal_preparation: bool = False
    housekeeping: bool = False
    companionship: bool = False
    temperature: str | None = Field(default=None, max_length=32)
    blood_pressure: str | None = Field(default=None, max_length=32)
    heart_rate: str | None = Field(default=None, max_length=32)
    activities_performed: str | None = None
    client_mood: str | None = None
    notes: str | None = None
    concerns: str | None = None
    follow_up_required: bool = False
    follow_up_notes: str | None = None


class CareLogCreate(_CareLogFields):
    client_id: int = Field(gt=0)
    staff_id: int = Field(gt=0)
    visit_id: int | None = Field(default=None, gt=0)
    visit_date: date
    visit_time: time


class CareLogUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    visit_id: int | None = Field(default=None, gt=0)
    duration_minutes: int | None = Field(default=None, ge=0)
    visit_type: str | None = None
    personal_care: bool | None = None
    medication: bool | None = None
    meal_preparation: bool | None = None
    housekeeping: bool | None = None
    companionship: bool | None = None
    temperature: str | None = Field(default=None, max_length=32)
    blood_pressure: str | None = Field(default=None, max_length=32)
    heart_rate: str | None = Field(default=None, max_length=32)
    activities_performed: str | None = None
    client_mood: str | None = None
    notes: str | None = None
    concerns: str | None = None
    follow_up_required: bool | None = None
    follow_up_notes: str | None = None


class CareLogOut(_CareLogFields):
    log_id: int
    client_id: int
    staff_id: int
    visit_id: int | None = None
    visit_date: date
    visit_time: time
    client_name: str | None = None
    staff_name: str | None = None
