"""
Worked-time arithmetic for a single punch record.

A record holds up to four punches; worked time is the span from entrada
to saida minus the lunch break (retorno - almoco) when both lunch punches
exist.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

PLACEHOLDER = "—"


class HasPunches(Protocol):
    entrada: datetime | None
    almoco: datetime | None
    retorno: datetime | None
    saida: datetime | None


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_worked_duration(record: HasPunches) -> timedelta | None:
    """Worked time of a finished day, or ``None`` while entrada/saida is missing.

    No validation is applied: a saida earlier than entrada yields a
    negative duration.
    """
    if record.entrada is None or record.saida is None:
        return None

    total = _aware(record.saida) - _aware(record.entrada)
    if record.almoco is not None and record.retorno is not None:
        total -= _aware(record.retorno) - _aware(record.almoco)
    return total


def compute_elapsed_duration(record: HasPunches, now_ref: datetime) -> timedelta:
    """Worked time so far, using ``now_ref`` for punches not yet made.

    Open lunch breaks run until ``now_ref``. Never negative.
    """
    if record.entrada is None:
        return timedelta(0)

    now_ref = _aware(now_ref)
    end = _aware(record.saida) if record.saida is not None else now_ref
    total = end - _aware(record.entrada)

    if record.almoco is not None:
        lunch_end = _aware(record.retorno) if record.retorno is not None else min(end, now_ref)
        lunch = lunch_end - _aware(record.almoco)
        if lunch > timedelta(0):
            total -= lunch

    return max(total, timedelta(0))


def duration_minutes(value: timedelta) -> int:
    """Whole minutes, truncated toward zero."""
    return int(value.total_seconds() / 60)


def format_minutes(total_minutes: int) -> str:
    sign = "-" if total_minutes < 0 else ""
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours}h{minutes:02d}m"


def format_duration(value: timedelta) -> str:
    """``timedelta(hours=8, minutes=5)`` -> ``"8h05m"``; seconds are dropped."""
    return format_minutes(duration_minutes(value))


def worked_duration_label(record: HasPunches) -> str | None:
    worked = compute_worked_duration(record)
    return format_duration(worked) if worked is not None else None
