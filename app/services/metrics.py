"""
Attendance metrics over a date range.

Everything here is a pure function of the punch records passed in, so the
same code serves a single employee's dashboard and the all-staff report.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from app.services.timesheet import (HasPunches, compute_elapsed_duration,
                                    duration_minutes, format_minutes)


class MetricRecord(HasPunches, Protocol):
    date: date
    auto_closed: bool


@dataclass
class DailyHours:
    date: date
    minutes: int
    hours: float


@dataclass
class WeeklyFrequency:
    week: str  # dd/mm of the ISO-week Monday
    week_start: date
    present: int
    total: int


@dataclass
class MetricsSnapshot:
    start_date: date
    end_date: date
    business_days: int
    days_worked: int
    days_absent: int
    attendance_pct: int
    total_minutes: int
    average_minutes: int
    punctual_days: int
    punctuality_pct: int
    current_streak: int
    longest_streak: int
    auto_closed_count: int
    daily_hours: list[DailyHours] = field(default_factory=list)
    weekly_frequency: list[WeeklyFrequency] = field(default_factory=list)

    @property
    def total_hours(self) -> str:
        return format_minutes(self.total_minutes)

    @property
    def average_hours(self) -> str:
        return format_minutes(self.average_minutes)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_hours"] = self.total_hours
        data["average_hours"] = self.average_hours
        return data


# ── Helpers ─────────────────────────────────────────────────────────
def parse_threshold(value: str) -> time:
    """Parse an ``HH:MM`` on-time threshold."""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid HH:MM threshold: {value!r}") from exc


def round_half_up(value: float | Decimal) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage, 0 when ``whole`` is 0, never above 100."""
    if whole <= 0:
        return 0
    return min(100, round_half_up(Decimal(part) * 100 / Decimal(whole)))


def count_business_days(start: date, end: date) -> int:
    """Monday-Friday days in ``[start, end]``; 0 for an inverted range."""
    if end < start:
        return 0
    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * 5
    for offset in range(remainder):
        if (start + timedelta(days=full_weeks * 7 + offset)).weekday() < 5:
            count += 1
    return count


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def is_punctual(entrada: datetime, threshold: time, tz: tzinfo) -> bool:
    if entrada.tzinfo is None:
        entrada = entrada.replace(tzinfo=timezone.utc)
    local = entrada.astimezone(tz)
    return (local.hour, local.minute) <= (threshold.hour, threshold.minute)


def compute_streaks(records: Iterable[MetricRecord]) -> tuple[int, int]:
    """Return ``(current, longest)`` runs of records with an entrada.

    Records are walked newest first. Only existing records are inspected:
    a calendar day without any record does not interrupt a run.
    """
    ordered = sorted(records, key=lambda r: r.date, reverse=True)
    current = 0
    longest = 0
    run = 0
    counting_current = True
    for record in ordered:
        if record.entrada is not None:
            run += 1
            if counting_current:
                current += 1
            longest = max(longest, run)
        else:
            run = 0
            counting_current = False
    return current, longest


def weekly_frequency(records: Iterable[MetricRecord]) -> list[WeeklyFrequency]:
    buckets: dict[date, list[int]] = defaultdict(lambda: [0, 0])
    for record in records:
        bucket = buckets[week_start(record.date)]
        bucket[1] += 1
        if record.entrada is not None:
            bucket[0] += 1
    return [
        WeeklyFrequency(
            week=monday.strftime("%d/%m"),
            week_start=monday,
            present=present,
            total=total,
        )
        for monday, (present, total) in sorted(buckets.items())
    ]


# ── Aggregate ───────────────────────────────────────────────────────
def compute_metrics(
    records: Sequence[MetricRecord],
    start: date,
    end: date,
    on_time: time | str,
    now_ref: datetime,
    tz: tzinfo,
) -> MetricsSnapshot:
    """Build the metrics snapshot for ``records`` within ``[start, end]``.

    ``now_ref`` closes records still missing a saida; ``tz`` is the civil
    timezone used to read entrada's time of day.
    """
    threshold = parse_threshold(on_time) if isinstance(on_time, str) else on_time

    business_days = count_business_days(start, end)
    worked = [r for r in records if r.entrada is not None]
    days_worked = len(worked)

    minutes_by_day: dict[date, int] = defaultdict(int)
    total_minutes = 0
    for record in records:
        minutes = duration_minutes(compute_elapsed_duration(record, now_ref))
        minutes_by_day[record.date] += minutes
        total_minutes += minutes

    punctual_days = sum(1 for r in worked if is_punctual(r.entrada, threshold, tz))
    current_streak, longest_streak = compute_streaks(records)

    return MetricsSnapshot(
        start_date=start,
        end_date=end,
        business_days=business_days,
        days_worked=days_worked,
        days_absent=max(0, business_days - days_worked),
        attendance_pct=percentage(days_worked, business_days),
        total_minutes=total_minutes,
        average_minutes=round_half_up(Decimal(total_minutes) / days_worked) if days_worked else 0,
        punctual_days=punctual_days,
        punctuality_pct=percentage(punctual_days, days_worked),
        current_streak=current_streak,
        longest_streak=longest_streak,
        auto_closed_count=sum(1 for r in records if r.auto_closed),
        daily_hours=[
            DailyHours(date=day, minutes=minutes, hours=round(minutes / 60, 2))
            for day, minutes in sorted(minutes_by_day.items())
        ],
        weekly_frequency=weekly_frequency(records),
    )
