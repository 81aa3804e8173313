# ems/services/attendance.py
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.exceptions import ConflictError, NotFoundError, ValidationError
from ems.models.model import Attendance, Employee
from ems.repositories.attendance import attendance_repository
from ems.schemas.schema import AttendanceResponse

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Transition:
    """One server-stamped check-in or check-out."""
    employee_id: int
    timestamp: datetime
    day: date
    notes: Optional[str] = None


def merge_notes(check_in_notes: Optional[str], check_out_notes: Optional[str]) -> Optional[str]:
    """Keep both phases' notes, each labelled by the phase that wrote it."""
    if not check_out_notes or not check_out_notes.strip():
        return check_in_notes
    if not check_in_notes:
        return f"Check-out: {check_out_notes.strip()}"
    return f"Check-in: {check_in_notes}\nCheck-out: {check_out_notes.strip()}"


class AttendanceEngine:
    """Check-in/check-out workflow per employee.

    Every operation runs inside the caller's unit of work. Check-in locks the
    employee row before looking for an open record, and the open record is
    additionally guarded by the unique ``open_employee_id`` column, so two
    concurrent check-ins cannot both commit.
    """

    def __init__(self, clock: Clock = system_clock, tz: str = "UTC"):
        self.clock = clock
        self.tz = ZoneInfo(tz)

    def _now(self):
        current = self.clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        stored = current.astimezone(timezone.utc).replace(tzinfo=None)
        return stored, current.astimezone(self.tz).date()

    def local_now(self) -> datetime:
        """Current wall-clock time in the attendance timezone, without tzinfo."""
        current = self.clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current.astimezone(self.tz).replace(tzinfo=None)

    def today_date(self) -> date:
        return self._now()[1]

    async def _lock_employee(self, session: AsyncSession, employee_id: int) -> None:
        result = await session.execute(
            select(Employee.id).where(Employee.id == employee_id).with_for_update()
        )
        if result.scalar() is None:
            raise NotFoundError(f"Employee with ID {employee_id} not found")

    async def _open_record(self, session: AsyncSession, employee_id: int) -> Optional[Attendance]:
        result = await session.execute(
            select(Attendance)
            .where(Attendance.employee_id == employee_id, Attendance.check_out_time.is_(None))
            .order_by(Attendance.check_in_time.desc())
        )
        return result.scalars().first()

    async def check_in(self, session: AsyncSession, employee_id: int, notes: Optional[str] = None) -> AttendanceResponse:
        await self._lock_employee(session, employee_id)

        open_record = await self._open_record(session, employee_id)
        if open_record is not None:
            logger.warning(
                f"Employee {employee_id} already checked in at {open_record.check_in_time} (record {open_record.id})"
            )
            raise ConflictError(f"Employee {employee_id} is already checked in")

        timestamp, day = self._now()
        record = await attendance_repository.create(
            session, Transition(employee_id=employee_id, timestamp=timestamp, day=day, notes=notes or None)
        )
        logger.info(f"Employee {employee_id} checked in at {timestamp} for {day}")
        return record

    async def check_out(self, session: AsyncSession, employee_id: int, notes: Optional[str] = None) -> AttendanceResponse:
        await self._lock_employee(session, employee_id)

        open_record = await self._open_record(session, employee_id)
        if open_record is None:
            logger.warning(f"Check-out rejected: employee {employee_id} has no open attendance record")
            raise NotFoundError(f"No active check-in found for employee {employee_id}")

        timestamp, _ = self._now()
        if timestamp < open_record.check_in_time:
            # Clock went backwards; never produce negative hours.
            timestamp = open_record.check_in_time

        record = await attendance_repository.update(
            session,
            open_record.id,
            Transition(
                employee_id=employee_id,
                timestamp=timestamp,
                day=open_record.date,
                notes=merge_notes(open_record.notes, notes),
            ),
        )
        logger.info(f"Employee {employee_id} checked out at {timestamp}, worked {record.total_hours}")
        return record

    async def list_for_employee(
        self,
        session: AsyncSession,
        employee_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AttendanceResponse]:
        if not await session.get(Employee, employee_id):
            raise NotFoundError(f"Employee with ID {employee_id} not found")
        return await self.list_all(session, start_date, end_date, Attendance.employee_id == employee_id)

    async def today(self, session: AsyncSession, employee_id: int) -> List[AttendanceResponse]:
        day = self.today_date()
        return await self.list_for_employee(session, employee_id, day, day)

    async def list_all(
        self,
        session: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        *where,
    ) -> List[AttendanceResponse]:
        if start_date and end_date and start_date > end_date:
            raise ValidationError("Start date cannot be after end date")

        clauses = list(where)
        if start_date:
            clauses.append(Attendance.date >= start_date)
        if end_date:
            clauses.append(Attendance.date <= end_date)
        return await attendance_repository.list_all(session, *clauses)
