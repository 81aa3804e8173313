# ems/api/attendance.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.database import get_db
from ems.core.decorators import log_execution_time, log_requests, rate_limit
from ems.core.security import get_current_active_user
from ems.models.model import User
from ems.schemas.schema import AttendanceResponse, CheckIn, CheckOut
from ems.services.attendance import AttendanceEngine

router = APIRouter(
    prefix="/api/attendance",
    tags=["attendance"],
    responses={404: {"description": "Not found"}},
)


def get_attendance_engine(request: Request) -> AttendanceEngine:
    return request.app.state.attendance


@router.post("/check-in", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
@log_requests
@log_execution_time
@rate_limit(calls=1000, period=60)
async def check_in(
    request: Request,
    payload: CheckIn,
    db: AsyncSession = Depends(get_db),
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_active_user)
):
    record = await engine.check_in(db, payload.employee_id, payload.notes)
    await db.commit()
    return record


@router.post("/check-out", response_model=AttendanceResponse)
@log_requests
@log_execution_time
@rate_limit(calls=1000, period=60)
async def check_out(
    request: Request,
    payload: CheckOut,
    db: AsyncSession = Depends(get_db),
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_active_user)
):
    record = await engine.check_out(db, payload.employee_id, payload.notes)
    await db.commit()
    return record


@router.get("/", response_model=List[AttendanceResponse])
@log_requests
@log_execution_time
async def get_all_attendance(
    request: Request,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_active_user)
):
    return await engine.list_all(db, start_date, end_date)


@router.get("/employee/{employee_id}", response_model=List[AttendanceResponse])
@log_requests
@log_execution_time
async def get_employee_attendance(
    request: Request,
    employee_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_active_user)
):
    return await engine.list_for_employee(db, employee_id, start_date, end_date)


@router.get("/employee/{employee_id}/today", response_model=List[AttendanceResponse])
@log_requests
@log_execution_time
async def get_today_attendance(
    request: Request,
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_active_user)
):
    return await engine.today(db, employee_id)
