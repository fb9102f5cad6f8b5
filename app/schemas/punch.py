"""Pydantic schemas for punch records, reports and metrics."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, field_validator, model_validator

from app.core.clock import CivilClock
from app.models.punch import PunchRecord
from app.services.metrics import MetricsSnapshot
from app.services.punch_clock import next_punch_slot
from app.services.timesheet import worked_duration_label


# ── Records ─────────────────────────────────────────────────────────
class UserBrief(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class PunchRead(BaseModel):
    id: int
    user_id: int
    user: UserBrief | None = None
    date: dt.date
    entrada: dt.datetime | None
    almoco: dt.datetime | None
    retorno: dt.datetime | None
    saida: dt.datetime | None
    auto_closed: bool
    worked_hours: str | None = None
    next_punch: str | None = None

    @classmethod
    def from_record(cls, record: PunchRecord, clock: CivilClock) -> "PunchRead":
        """Serialize with timestamps in civil time."""

        def local(value: dt.datetime | None) -> dt.datetime | None:
            return clock.localize(value) if value is not None else None

        return cls(
            id=record.id,
            user_id=record.user_id,
            user=UserBrief.model_validate(record.user) if record.user is not None else None,
            date=record.date,
            entrada=local(record.entrada),
            almoco=local(record.almoco),
            retorno=local(record.retorno),
            saida=local(record.saida),
            auto_closed=record.auto_closed,
            worked_hours=worked_duration_label(record),
            next_punch=next_punch_slot(record),
        )


# ── Email report ────────────────────────────────────────────────────
class EmailReportRequest(BaseModel):
    start_date: dt.date
    end_date: dt.date
    user_id: int | None = None
    recipient: str
    format: str = "pdf"  # pdf | xlsx | csv

    @field_validator("recipient")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v

    @model_validator(mode="after")
    def _check(self) -> "EmailReportRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.format not in ("pdf", "xlsx", "csv"):
            raise ValueError("format must be one of: pdf, xlsx, csv")
        return self


class EmailReportResponse(BaseModel):
    sent: bool
    message: str


# ── Metrics ─────────────────────────────────────────────────────────
class DailyHoursRead(BaseModel):
    date: dt.date
    minutes: int
    hours: float


class WeeklyFrequencyRead(BaseModel):
    week: str
    week_start: dt.date
    present: int
    total: int


class PunchMetrics(BaseModel):
    start_date: dt.date
    end_date: dt.date
    business_days: int
    days_worked: int
    days_absent: int
    attendance_pct: int
    total_minutes: int
    total_hours: str
    average_minutes: int
    average_hours: str
    punctual_days: int
    punctuality_pct: int
    current_streak: int
    longest_streak: int
    auto_closed_count: int
    daily_hours: list[DailyHoursRead]
    weekly_frequency: list[WeeklyFrequencyRead]

    @classmethod
    def from_snapshot(cls, snapshot: MetricsSnapshot) -> "PunchMetrics":
        return cls.model_validate(snapshot.to_dict())


# ── Auto-close ──────────────────────────────────────────────────────
class ClosedUserRead(BaseModel):
    id: int
    name: str
    entrada: dt.datetime | None


class SweepResultRead(BaseModel):
    day: dt.date
    closed: int
    users: list[ClosedUserRead]
