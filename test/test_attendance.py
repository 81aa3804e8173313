import asyncio
import logging
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from conftest import FakeClock, employee_payload
from ems.core.exceptions import ConflictError, NotFoundError, ValidationError
from ems.models.model import Attendance
from ems.repositories.employees import employee_repository
from ems.services.attendance import AttendanceEngine, merge_notes


async def open_records(database, employee_id):
    async with database.session() as session:
        result = await session.execute(
            select(func.count(Attendance.id)).where(
                Attendance.employee_id == employee_id, Attendance.check_out_time.is_(None)
            )
        )
        return result.scalar()


async def test_check_in_then_check_out_computes_total_hours(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    t0 = clock.now

    async with database.session() as session:
        record = await engine.check_in(session, employee.id, "Early start")

    assert record.check_in_time == t0.replace(tzinfo=None)
    assert record.check_out_time is None
    assert record.total_hours is None
    assert record.date == date(2025, 3, 3)
    assert record.employee_name == "John Doe"
    assert record.notes == "Early start"

    t1 = clock.advance(hours=8, minutes=30)
    async with database.session() as session:
        closed = await engine.check_out(session, employee.id)

    assert closed.id == record.id
    assert closed.check_out_time == t1.replace(tzinfo=None)
    assert closed.total_hours == timedelta(hours=8, minutes=30)
    assert closed.updated_at is not None
    assert closed.notes == "Early start"


async def test_second_check_in_is_conflict(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    async with database.session() as session:
        await engine.check_in(session, employee.id)

    clock.advance(minutes=5)
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await engine.check_in(session, employee.id)

    assert await open_records(database, employee.id) == 1


async def test_rejected_check_in_is_logged_as_warning(database, employee, clock, caplog):
    engine = AttendanceEngine(clock=clock)
    async with database.session() as session:
        await engine.check_in(session, employee.id)

    caplog.set_level(logging.WARNING)
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await engine.check_in(session, employee.id)

    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert any("rolled back" in r.getMessage() for r in caplog.records if r.name == "ems.core.database")


async def test_open_record_from_previous_day_blocks_check_in(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    async with database.session() as session:
        await engine.check_in(session, employee.id)

    clock.advance(days=1)
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await engine.check_in(session, employee.id)


async def test_check_in_again_after_check_out(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    async with database.session() as session:
        await engine.check_in(session, employee.id)
    clock.advance(hours=4)
    async with database.session() as session:
        await engine.check_out(session, employee.id)
    clock.advance(hours=1)
    async with database.session() as session:
        await engine.check_in(session, employee.id)

    async with database.session() as session:
        records = await engine.today(session, employee.id)
    assert len(records) == 2
    assert records[0].check_out_time is not None
    assert records[1].check_out_time is None


async def test_check_out_without_open_record_is_not_found(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    with pytest.raises(NotFoundError):
        async with database.session() as session:
            await engine.check_out(session, employee.id)


async def test_check_in_unknown_employee_is_not_found(database, clock):
    engine = AttendanceEngine(clock=clock)
    with pytest.raises(NotFoundError):
        async with database.session() as session:
            await engine.check_in(session, 404)


async def test_concurrent_check_ins_yield_exactly_one_success(database, employee, clock):
    engine = AttendanceEngine(clock=clock)

    async def attempt():
        async with database.session() as session:
            return await engine.check_in(session, employee.id)

    results = await asyncio.gather(*(attempt() for _ in range(5)), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 4
    assert await open_records(database, employee.id) == 1


async def test_check_out_notes_are_appended(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    async with database.session() as session:
        await engine.check_in(session, employee.id, "On site")
    clock.advance(hours=2)
    async with database.session() as session:
        record = await engine.check_out(session, employee.id, "Left for dentist")

    assert record.notes == "Check-in: On site\nCheck-out: Left for dentist"


def test_merge_notes():
    assert merge_notes(None, None) is None
    assert merge_notes("In", "  ") == "In"
    assert merge_notes(None, "Out") == "Check-out: Out"


async def test_list_for_employee_filters_and_orders(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    for _ in range(3):
        async with database.session() as session:
            await engine.check_in(session, employee.id)
        clock.advance(hours=8)
        async with database.session() as session:
            await engine.check_out(session, employee.id)
        clock.advance(hours=16)

    async with database.session() as session:
        everything = await engine.list_for_employee(session, employee.id)
        bounded = await engine.list_for_employee(session, employee.id, date(2025, 3, 4), date(2025, 3, 5))

    assert [r.date for r in everything] == [date(2025, 3, 3), date(2025, 3, 4), date(2025, 3, 5)]
    assert [r.date for r in bounded] == [date(2025, 3, 4), date(2025, 3, 5)]


async def test_list_for_employee_rejects_inverted_range(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    with pytest.raises(ValidationError):
        async with database.session() as session:
            await engine.list_for_employee(session, employee.id, date(2025, 3, 5), date(2025, 3, 1))


async def test_list_all_spans_employees(database, department, employee, clock):
    async with database.session() as session:
        other = await employee_repository.create(session, employee_payload(department.id, email="other@example.com"))

    engine = AttendanceEngine(clock=clock)
    async with database.session() as session:
        await engine.check_in(session, employee.id)
        await engine.check_in(session, other.id)

    async with database.session() as session:
        records = await engine.list_all(session, date(2025, 3, 3), date(2025, 3, 3))
    assert {r.employee_id for r in records} == {employee.id, other.id}


async def test_calendar_day_follows_configured_timezone(database, employee):
    # 23:30 UTC is already the next day in Tokyo
    clock = FakeClock(datetime(2025, 3, 3, 23, 30, tzinfo=timezone.utc))
    engine = AttendanceEngine(clock=clock, tz="Asia/Tokyo")

    async with database.session() as session:
        record = await engine.check_in(session, employee.id)

    assert record.date == date(2025, 3, 4)
    assert record.check_in_time == datetime(2025, 3, 3, 23, 30)
