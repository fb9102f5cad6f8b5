"""
Auto-close sweep — force-completes records left open at the cutoff hour.

Every record of the civil day with an entrada but no saida gets
``saida = <day> AUTO_CLOSE_HOUR:00`` and ``auto_closed = True``. Running it
again the same day finds nothing left to close.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import CivilClock, default_clock
from app.core.config import settings
from app.core.exceptions import PersistenceFailure
from app.db.session import async_session_factory
from app.models.punch import PunchRecord

logger = logging.getLogger(__name__)


@dataclass
class ClosedUser:
    id: int
    name: str
    entrada: datetime | None


@dataclass
class SweepResult:
    day: date
    closed: int = 0
    users: list[ClosedUser] = field(default_factory=list)


def closing_instant(clock: CivilClock, day: date, hour: int | None = None) -> datetime:
    """The cutoff of ``day`` as a UTC instant."""
    hour = settings.AUTO_CLOSE_HOUR if hour is None else hour
    return clock.at(day, hour).astimezone(timezone.utc)


async def close_open_records(
    db: AsyncSession,
    clock: CivilClock,
    day: date | None = None,
    hour: int | None = None,
) -> SweepResult:
    """Close today's (or ``day``'s) open records at ``hour`` civil time.

    Does nothing before the cutoff. Records punched in after the cutoff
    are left open, so ``saida`` never precedes ``entrada``.
    """
    day = day or clock.today()
    hour = settings.AUTO_CLOSE_HOUR if hour is None else hour
    closing_time = closing_instant(clock, day, hour)

    if clock.now() < closing_time:
        logger.info("Auto-close for %s skipped: cutoff %02d:00 not reached", day, hour)
        return SweepResult(day=day)

    try:
        result = await db.execute(
            select(PunchRecord)
            .options(selectinload(PunchRecord.user))
            .where(
                PunchRecord.date == day,
                PunchRecord.entrada.is_not(None),
                PunchRecord.entrada <= closing_time,
                PunchRecord.saida.is_(None),
            )
        )
        open_records = list(result.scalars().all())

        if not open_records:
            logger.info("No open punch records to close for %s", day)
            return SweepResult(day=day)

        await db.execute(
            update(PunchRecord)
            .where(PunchRecord.id.in_([r.id for r in open_records]))
            .values(saida=closing_time, auto_closed=True)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceFailure("Auto-close sweep failed") from exc

    users = [
        ClosedUser(id=r.user_id, name=r.user.name, entrada=r.entrada)
        for r in open_records
    ]
    logger.info("%d punch records auto-closed at %02d:00 for %s", len(users), hour, day)
    for user in users:
        entrada = clock.localize(user.entrada).strftime("%H:%M") if user.entrada else "—"
        logger.info("  -> %s (entrada: %s)", user.name, entrada)

    return SweepResult(day=day, closed=len(users), users=users)


async def run_auto_close(clock: CivilClock | None = None) -> SweepResult | None:
    """Scheduler entry point: own session, failures logged and left for the next run."""
    clock = clock or default_clock()
    async with async_session_factory() as session:
        try:
            return await close_open_records(session, clock)
        except PersistenceFailure:
            logger.exception("Auto-close sweep aborted; next attempt at the next scheduled run")
            return None
