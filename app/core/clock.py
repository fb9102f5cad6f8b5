"""
Civil clock — "now", "today" and wall-clock instants in the business timezone.

Every function that needs the current civil date receives a ``CivilClock``
instead of reading the process-local time, so the server may run in UTC
while days still start at midnight in São Paulo.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timezone, tzinfo

from app.core.config import settings


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CivilClock:
    """A timezone plus a now-provider."""

    def __init__(self, tz: tzinfo, now_provider: Callable[[], datetime] = _utc_now):
        self.tz = tz
        self._now_provider = now_provider

    def now(self) -> datetime:
        """Current instant, expressed in the civil timezone."""
        current = self._now_provider()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current.astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def at(self, day: date, hour: int, minute: int = 0) -> datetime:
        """The instant ``day hour:minute`` on the civil wall clock."""
        return datetime.combine(day, time(hour, minute), tzinfo=self.tz)

    def localize(self, value: datetime) -> datetime:
        """Convert a stored timestamp to civil time (naive values are UTC)."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz)


def default_clock() -> CivilClock:
    return CivilClock(settings.tzinfo)
