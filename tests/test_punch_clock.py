"""Tests for punch registration and record lookups."""

from datetime import date

import pytest
from conftest import civil
from sqlalchemy import func, select

from app.core.exceptions import (InvalidDateRange, JourneyAlreadyClosed,
                                 PersistenceFailure, RecordNotFound)
from app.models.punch import PUNCH_SLOTS, PunchRecord
from app.services.punch_clock import (get_record, get_today_record,
                                      list_records, next_punch_slot,
                                      register_punch, resolve_scope)


async def test_four_punches_fill_slots_in_order(db_session, employee_user, clock, now):
    times = [(8, 10), (12, 5), (13, 2), (17, 45)]
    for n, (hour, minute) in enumerate(times, start=1):
        now.set(2024, 3, 4, hour, minute)
        record = await register_punch(db_session, employee_user.id, clock)
        filled = [slot for slot in PUNCH_SLOTS if getattr(record, slot) is not None]
        assert filled == list(PUNCH_SLOTS[:n])

    assert clock.localize(record.entrada).strftime("%H:%M") == "08:10"
    assert clock.localize(record.saida).strftime("%H:%M") == "17:45"
    assert record.user.name == "João Silva"


async def test_fifth_punch_is_rejected(db_session, employee_user, clock):
    for _ in range(4):
        await register_punch(db_session, employee_user.id, clock)

    with pytest.raises(JourneyAlreadyClosed):
        await register_punch(db_session, employee_user.id, clock)

    count = await db_session.scalar(select(func.count(PunchRecord.id)))
    assert count == 1


async def test_today_uses_civil_date(db_session, employee_user, clock, now):
    # 23:30 in São Paulo is already the next day in UTC
    now.set(2024, 3, 4, 23, 30)
    record = await register_punch(db_session, employee_user.id, clock)
    assert record.date == date(2024, 3, 4)


async def test_new_day_starts_new_record(db_session, employee_user, clock, now):
    first = await register_punch(db_session, employee_user.id, clock)
    now.set(2024, 3, 5, 8, 0)
    second = await register_punch(db_session, employee_user.id, clock)
    assert first.id != second.id
    assert second.date == date(2024, 3, 5)
    assert second.almoco is None


async def test_concurrent_create_retries_as_update(
    db_session, session_factory, employee_user, clock, monkeypatch
):
    """A row created by a racing request turns this punch into the next slot."""
    real_commit = db_session.commit
    raced = False

    async def racing_commit():
        nonlocal raced
        if not raced:
            raced = True
            async with session_factory() as other:
                other.add(
                    PunchRecord(
                        user_id=employee_user.id,
                        date=date(2024, 3, 4),
                        entrada=civil(2024, 3, 4, 8, 9),
                    )
                )
                await other.commit()
        await real_commit()

    monkeypatch.setattr(db_session, "commit", racing_commit)

    record = await register_punch(db_session, employee_user.id, clock)
    assert record.entrada is not None
    assert record.almoco is not None
    count = await db_session.scalar(select(func.count(PunchRecord.id)))
    assert count == 1


async def test_retry_is_bounded(db_session, employee_user, clock, monkeypatch):
    from sqlalchemy.exc import IntegrityError

    async def always_conflicts():
        raise IntegrityError("INSERT", {}, Exception("unique"))

    monkeypatch.setattr(db_session, "commit", always_conflicts)

    with pytest.raises(PersistenceFailure):
        await register_punch(db_session, employee_user.id, clock, max_attempts=2)


def test_next_punch_slot():
    assert next_punch_slot(None) == "entrada"
    record = PunchRecord(entrada=civil(2024, 3, 4, 8), almoco=civil(2024, 3, 4, 12))
    assert next_punch_slot(record) == "retorno"
    record.retorno = civil(2024, 3, 4, 13)
    record.saida = civil(2024, 3, 4, 17)
    assert next_punch_slot(record) is None


async def test_get_today_record(db_session, employee_user, clock):
    assert await get_today_record(db_session, employee_user.id, clock) is None
    await register_punch(db_session, employee_user.id, clock)
    record = await get_today_record(db_session, employee_user.id, clock)
    assert record is not None
    assert record.date == date(2024, 3, 4)


async def test_get_record_not_found(db_session):
    with pytest.raises(RecordNotFound):
        await get_record(db_session, 999)


async def test_list_records_filters_and_orders(db_session, employee_user, other_employee):
    for user, day in [
        (employee_user, 6),
        (other_employee, 4),
        (employee_user, 4),
        (employee_user, 11),
    ]:
        db_session.add(
            PunchRecord(user_id=user.id, date=date(2024, 3, day), entrada=civil(2024, 3, day, 8))
        )
    await db_session.commit()

    everyone = await list_records(db_session, None, date(2024, 3, 4), date(2024, 3, 8))
    assert [(r.date.day, r.user_id) for r in everyone] == [
        (4, employee_user.id),
        (4, other_employee.id),
        (6, employee_user.id),
    ]

    mine = await list_records(db_session, employee_user.id)
    assert [r.date.day for r in mine] == [4, 6, 11]


async def test_list_records_rejects_inverted_range(db_session):
    with pytest.raises(InvalidDateRange):
        await list_records(db_session, None, date(2024, 3, 8), date(2024, 3, 4))


async def test_resolve_scope(admin_user, employee_user):
    assert resolve_scope(admin_user, None) is None
    assert resolve_scope(admin_user, 7) == 7
    assert resolve_scope(employee_user, None) == employee_user.id
    assert resolve_scope(employee_user, 7) == employee_user.id
