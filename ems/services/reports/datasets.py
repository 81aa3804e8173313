# ems/services/reports/datasets.py
import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.exceptions import ValidationError
from ems.models.model import Attendance, Department, Employee, PerformanceMetric
from ems.repositories.attendance import attendance_repository
from ems.repositories.departments import department_repository
from ems.repositories.employees import employee_repository
from ems.repositories.performance import performance_repository
from ems.services.reports.base import Dataset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportParams:
    today: date
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    employee_id: Optional[int] = None
    generated_at: Optional[datetime] = None


Gatherer = Callable[[AsyncSession, ReportParams], Awaitable[Dataset]]


def _money(value) -> str:
    return f"{Decimal(value or 0):.2f}"


def _hours(value: Optional[timedelta]) -> str:
    return f"{value.total_seconds() / 3600:.2f}" if value is not None else ""


def months_back(today: date, months: int) -> date:
    """Same day of the month ``months`` earlier, clamped to that month's last day."""
    index = today.year * 12 + (today.month - 1) - months
    year, month = index // 12, index % 12 + 1
    return date(year, month, min(today.day, calendar.monthrange(year, month)[1]))


async def employee_directory(session: AsyncSession, params: ReportParams) -> Dataset:
    employees = await employee_repository.list_all(
        session,
        Employee.is_active.is_(True),
        order_by=[Employee.last_name, Employee.first_name, Employee.id],
    )
    return Dataset(
        name="employees",
        title="Employee Directory",
        columns=["Id", "FirstName", "LastName", "Email", "Department", "Position", "Salary"],
        rows=[
            [e.id, e.first_name, e.last_name, e.email, e.department_name, e.position or "", _money(e.salary)]
            for e in employees
        ],
    )


async def department_summary(session: AsyncSession, params: ReportParams) -> Dataset:
    departments = await department_repository.list_all(session)

    # Both totals cover active employees only
    result = await session.execute(
        select(Employee.department_id, func.count(Employee.id), func.sum(Employee.salary))
        .where(Employee.is_active.is_(True))
        .group_by(Employee.department_id)
    )
    totals = {department_id: (count, salary) for department_id, count, salary in result.all()}

    return Dataset(
        name="departments",
        title="Department Report",
        columns=["Id", "Name", "Description", "ManagerName", "CreatedAt", "EmployeeCount", "TotalSalary"],
        rows=[
            [
                d.id,
                d.name,
                d.description or "",
                d.manager_name or "",
                d.created_at.strftime("%Y-%m-%d"),
                totals.get(d.id, (0, None))[0],
                _money(totals.get(d.id, (0, None))[1]),
            ]
            for d in departments
        ],
    )


def _attendance_query(*where):
    return (
        attendance_repository.projection(*where, order_by=[Attendance.date, Employee.last_name, Attendance.check_in_time])
        .join(Department, Employee.department_id == Department.id)
        .add_columns(Department.name.label("department"))
    )


async def attendance_report(session: AsyncSession, params: ReportParams) -> Dataset:
    if params.start_date and params.end_date and params.start_date > params.end_date:
        raise ValidationError("Start date cannot be after end date")

    where = []
    if params.start_date:
        where.append(Attendance.date >= params.start_date)
    if params.end_date:
        where.append(Attendance.date <= params.end_date)
    if params.employee_id:
        where.append(Attendance.employee_id == params.employee_id)

    result = await session.execute(_attendance_query(*where))
    return Dataset(
        name="attendance",
        title="Attendance Report",
        columns=[
            "Id", "EmployeeId", "EmployeeName", "Department", "Date",
            "CheckInTime", "CheckOutTime", "TotalHours", "Notes",
        ],
        rows=[
            [
                r["id"],
                r["employee_id"],
                r["employee_name"],
                r["department"],
                r["date"].isoformat(),
                r["check_in_time"].strftime("%H:%M:%S"),
                r["check_out_time"].strftime("%H:%M:%S") if r["check_out_time"] else "",
                _hours(r["total_hours"]),
                r["notes"] or "",
            ]
            for r in result.mappings().all()
        ],
    )


async def salary_report(session: AsyncSession, params: ReportParams) -> Dataset:
    employees = await employee_repository.list_all(
        session,
        Employee.is_active.is_(True),
        order_by=[Employee.salary.desc(), Employee.id],
    )
    return Dataset(
        name="salaries",
        title="Salary Report",
        columns=["Id", "FirstName", "LastName", "Email", "Department", "Position", "Salary", "DateOfJoining"],
        rows=[
            [
                e.id, e.first_name, e.last_name, e.email, e.department_name,
                e.position or "", _money(e.salary), e.date_of_joining.isoformat(),
            ]
            for e in employees
        ],
    )


async def hiring_trends(session: AsyncSession, params: ReportParams) -> Dataset:
    start = months_back(params.today, 12)
    employees = await employee_repository.list_all(
        session,
        Employee.date_of_joining >= start,
        Employee.date_of_joining <= params.today,
        order_by=[Employee.date_of_joining],
    )

    hires = defaultdict(int)
    for e in employees:
        hires[(e.date_of_joining.year, e.date_of_joining.month)] += 1

    return Dataset(
        name="hiring-trends",
        title="Hiring Trends",
        columns=["Year", "Month", "MonthName", "Hires"],
        rows=[[y, m, calendar.month_name[m], hires[(y, m)]] for y, m in sorted(hires)],
    )


async def department_growth(session: AsyncSession, params: ReportParams) -> Dataset:
    start = months_back(params.today, 12)
    employees = await employee_repository.list_all(
        session,
        Employee.date_of_joining >= start,
        Employee.date_of_joining <= params.today,
        order_by=[Department.name, Employee.date_of_joining],
    )

    hires = defaultdict(int)
    for e in employees:
        hires[(e.department_name, e.date_of_joining.year, e.date_of_joining.month)] += 1

    return Dataset(
        name="department-growth",
        title="Department Growth",
        columns=["Department", "Year", "Month", "MonthName", "NewHires"],
        rows=[[d, y, m, calendar.month_name[m], hires[(d, y, m)]] for d, y, m in sorted(hires)],
    )


async def attendance_patterns(session: AsyncSession, params: ReportParams) -> Dataset:
    start = params.today - timedelta(days=30)
    result = await session.execute(
        _attendance_query(Attendance.date >= start, Attendance.date <= params.today)
    )

    groups = defaultdict(list)
    for r in result.mappings().all():
        weekday = r["date"].weekday()
        key = (r["department"], r["employee_name"], weekday, r["check_in_time"].hour, r["employee_id"])
        groups[key].append(r)

    rows = []
    for (department, name, weekday, hour, employee_id), records in sorted(groups.items()):
        minutes = [r["check_in_time"].hour * 60 + r["check_in_time"].minute for r in records]
        average = round(sum(minutes) / len(minutes))
        worked = [r["total_hours"].total_seconds() / 3600 for r in records if r["total_hours"] is not None]
        rows.append([
            employee_id,
            name,
            department,
            calendar.day_name[weekday],
            hour,
            len(records),
            f"{average // 60:02d}:{average % 60:02d}",
            f"{sum(worked) / len(worked):.2f}" if worked else "",
        ])

    return Dataset(
        name="attendance-patterns",
        title="Attendance Patterns (last 30 days)",
        columns=[
            "EmployeeId", "EmployeeName", "Department", "DayOfWeek", "Hour",
            "AttendanceCount", "AvgCheckInTime", "AvgTotalHours",
        ],
        rows=rows,
    )


async def performance_metrics(session: AsyncSession, params: ReportParams) -> Dataset:
    where = []
    if params.employee_id:
        where.append(PerformanceMetric.employee_id == params.employee_id)

    stmt = (
        performance_repository.projection(
            *where,
            order_by=[Department.name, Employee.last_name, PerformanceMetric.year, PerformanceMetric.quarter],
        )
        .join(Department, Employee.department_id == Department.id)
        .add_columns(Department.name.label("department"))
    )
    result = await session.execute(stmt)

    return Dataset(
        name="performance-metrics",
        title="Performance Metrics",
        columns=[
            "EmployeeId", "EmployeeName", "Department", "Year", "Quarter",
            "PerformanceScore", "Comments", "Goals", "Achievements", "CreatedAt",
        ],
        rows=[
            [
                r["employee_id"], r["employee_name"], r["department"], r["year"], r["quarter"],
                _money(r["performance_score"]), r["comments"] or "", r["goals"] or "",
                r["achievements"] or "", r["created_at"].strftime("%Y-%m-%d"),
            ]
            for r in result.mappings().all()
        ],
    )


DATASETS: Dict[str, Gatherer] = {
    "employees": employee_directory,
    "departments": department_summary,
    "attendance": attendance_report,
    "salaries": salary_report,
    "hiring-trends": hiring_trends,
    "department-growth": department_growth,
    "attendance-patterns": attendance_patterns,
    "performance-metrics": performance_metrics,
}
