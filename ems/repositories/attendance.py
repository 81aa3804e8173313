# ems/repositories/attendance.py
from sqlalchemy.orm import contains_eager

from ems.core.repository import EntityMapping, Repository
from ems.models.model import Attendance, Employee, utcnow
from ems.schemas.schema import AttendanceResponse


def _scope(stmt):
    return stmt.join(Employee, Attendance.employee_id == Employee.id)


def _columns():
    return (
        Attendance.id.label("id"),
        Attendance.employee_id.label("employee_id"),
        (Employee.first_name + " " + Employee.last_name).label("employee_name"),
        Attendance.check_in_time.label("check_in_time"),
        Attendance.check_out_time.label("check_out_time"),
        Attendance.total_hours.label("total_hours"),
        Attendance.notes.label("notes"),
        Attendance.date.label("date"),
        Attendance.created_at.label("created_at"),
        Attendance.updated_at.label("updated_at"),
    )


def to_transport(record: Attendance) -> AttendanceResponse:
    return AttendanceResponse(
        id=record.id,
        employee_id=record.employee_id,
        employee_name=record.employee.full_name if record.employee else "",
        check_in_time=record.check_in_time,
        check_out_time=record.check_out_time,
        total_hours=record.total_hours,
        notes=record.notes,
        date=record.date,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def from_payload(transition) -> Attendance:
    """Build an open record from a check-in transition."""
    return Attendance(
        employee_id=transition.employee_id,
        check_in_time=transition.timestamp,
        notes=transition.notes,
        date=transition.day,
        open_employee_id=transition.employee_id,
        created_at=utcnow(),
    )


def update_entity(record: Attendance, transition) -> None:
    """Close an open record with a check-out transition."""
    record.check_out_time = transition.timestamp
    record.total_hours = transition.timestamp - record.check_in_time
    record.notes = transition.notes
    record.open_employee_id = None
    record.updated_at = utcnow()


attendance_mapping = EntityMapping(
    model=Attendance,
    transport=AttendanceResponse,
    columns=_columns,
    to_transport=to_transport,
    from_payload=from_payload,
    update_entity=update_entity,
    scope=_scope,
    load_options=lambda: (contains_eager(Attendance.employee),),
    order_by=lambda: (Attendance.date, Attendance.check_in_time, Attendance.id),
    name="Attendance",
)

attendance_repository = Repository(attendance_mapping)
