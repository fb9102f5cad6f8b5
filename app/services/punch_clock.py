"""
Punch registration and record lookups.

``register_punch`` moves today's record through
entrada -> almoco -> retorno -> saida, one slot per call.
"""

from __future__ import annotations

import logging
from datetime import date, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import CivilClock
from app.core.config import settings
from app.core.exceptions import (InvalidDateRange, JourneyAlreadyClosed,
                                 PersistenceFailure, RecordNotFound)
from app.models.punch import PUNCH_SLOTS, PunchRecord
from app.models.user import User

logger = logging.getLogger(__name__)


def next_punch_slot(record: PunchRecord | None) -> str | None:
    """Name of the slot the next punch fills, ``None`` once saida is set."""
    if record is None:
        return PUNCH_SLOTS[0]
    for slot in PUNCH_SLOTS:
        if getattr(record, slot) is None:
            return slot
    return None


async def get_record(db: AsyncSession, record_id: int) -> PunchRecord:
    result = await db.execute(
        select(PunchRecord)
        .options(selectinload(PunchRecord.user))
        .where(PunchRecord.id == record_id)
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise RecordNotFound(f"Punch record {record_id} not found")
    return record


async def get_today_record(
    db: AsyncSession, user_id: int, clock: CivilClock
) -> PunchRecord | None:
    result = await db.execute(
        select(PunchRecord)
        .options(selectinload(PunchRecord.user))
        .where(PunchRecord.user_id == user_id, PunchRecord.date == clock.today())
    )
    return result.scalar_one_or_none()


async def register_punch(
    db: AsyncSession,
    user_id: int,
    clock: CivilClock,
    max_attempts: int | None = None,
) -> PunchRecord:
    """Record the next punch of today for ``user_id``.

    Raises ``JourneyAlreadyClosed`` when all four punches exist. A unique
    violation while creating the day's row means a concurrent punch created
    it first; the row is reloaded and the update path retried.
    """
    attempts = max_attempts or settings.PUNCH_MAX_ATTEMPTS
    now = clock.now()
    today = now.date()
    # Stored as UTC; SQLite drops offsets
    stamp = now.astimezone(timezone.utc)

    for attempt in range(1, attempts + 1):
        try:
            result = await db.execute(
                select(PunchRecord)
                .where(PunchRecord.user_id == user_id, PunchRecord.date == today)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            record = result.scalar_one_or_none()

            if record is None:
                record = PunchRecord(user_id=user_id, date=today, entrada=stamp)
                db.add(record)
                await db.commit()
                logger.info("Punch entrada for user %d on %s (new record)", user_id, today)
                return await get_record(db, record.id)

            slot = next_punch_slot(record)
            if slot is None:
                await db.rollback()
                raise JourneyAlreadyClosed()

            setattr(record, slot, stamp)
            await db.commit()
            logger.info("Punch %s for user %d on %s", slot, user_id, today)
            return await get_record(db, record.id)

        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Concurrent punch for user %d on %s (attempt %d/%d)",
                user_id, today, attempt, attempts,
            )
        except SQLAlchemyError as exc:
            await db.rollback()
            raise PersistenceFailure() from exc

    raise PersistenceFailure(f"Could not register punch after {attempts} attempts")


async def list_records(
    db: AsyncSession,
    user_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[PunchRecord]:
    """Records ordered by date (then user), optionally filtered."""
    if start is not None and end is not None and end < start:
        raise InvalidDateRange()

    query = (
        select(PunchRecord)
        .options(selectinload(PunchRecord.user))
        .order_by(PunchRecord.date.asc(), PunchRecord.user_id.asc())
    )
    if user_id is not None:
        query = query.where(PunchRecord.user_id == user_id)
    if start is not None:
        query = query.where(PunchRecord.date >= start)
    if end is not None:
        query = query.where(PunchRecord.date <= end)

    result = await db.execute(query)
    return list(result.scalars().all())


def resolve_scope(current_user: User, requested_user_id: int | None) -> int | None:
    """User id a report is restricted to; ``None`` means everyone.

    Employees only ever see their own records.
    """
    if current_user.is_admin:
        return requested_user_id
    return current_user.id
