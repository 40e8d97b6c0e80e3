from datetime import date, datetime, time, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), index=True)
    care_level: Mapped[str | None] = mapped_column(String(32), nullable=True)


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), index=True)
    role_name: Mapped[str | None] = mapped_column(String(64), nullable=True)


class Visit(Base):
    __tablename__ = "visits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), index=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id"), index=True)
    visit_date: Mapped[date] = mapped_column(Date, index=True)
    visit_time: Mapped[time] = mapped_column(Time)
    estimated_duration: Mapped[int] = mapped_column(Integer, default=60)
    visit_type: Mapped[str] = mapped_column(String(32), default="routine")
    priority: Mapped[str] = mapped_column(String(32), default="normal")
    service_type: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurrence_pattern: Mapped[str | None] = mapped_column(String(32), nullable=True)
    recurrence_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="scheduled", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now_naive, onupdate=utc_now_naive
    )

    client = relationship("Client")
    staff = relationship("Staff")


class CareLog(Base):
    __tablename__ = "care_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), index=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id"), index=True)
    visit_id: Mapped[int | None] = mapped_column(
        ForeignKey("visits.id"), nullable=True, index=True
    )
    visit_date: Mapped[date] = mapped_column(Date, index=True)
    visit_time: Mapped[time] = mapped_column(Time)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    visit_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    personal_care: Mapped[bool] = mapped_column(Boolean, default=False)
    medication: Mapped[bool] = mapped_column(Boolean, default=False)
    meal_preparation: Mapped[bool] = mapped_column(Boolean, default=False)
    housekeeping: Mapped[bool] = mapped_column(Boolean, default=False)
    companionship: Mapped[bool] = mapped_column(Boolean, default=False)

    temperature: Mapped[str | None] = mapped_column(String(32), nullable=True)
    blood_pressure: Mapped[str | None] = mapped_column(String(32), nullable=True)
    heart_rate: Mapped[str | None] = mapped_column(String(32), nullable=True)

    activities_performed: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_mood: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    concerns: Mapped[str | None] = mapped_column(Text, nullable=True)
    follow_up_required: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    follow_up_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)

    client = relationship("Client")
    staff = relationship("Staff")


class VisitStatusEvent(Base):
    __tablename__ = "visit_status_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    visit_id: Mapped[int] = mapped_column(
        ForeignKey("visits.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str] = mapped_column(String(32))
    note: Mapped[str | None] = mapped_column(String(300), nullable=True)
