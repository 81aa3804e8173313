# ems/repositories/employees.py
import logging
from typing import Any, List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from ems.core.exceptions import ConflictError, ValidationError
from ems.core.repository import EntityMapping, Repository
from ems.models.model import Department, Employee, utcnow
from ems.schemas.schema import EmployeeResponse, Page, PageRequest

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "firstname": lambda: Employee.first_name,
    "lastname": lambda: Employee.last_name,
    "email": lambda: Employee.email,
    "position": lambda: Employee.position,
    "salary": lambda: Employee.salary,
    "department": lambda: Department.name,
    "dateofjoining": lambda: Employee.date_of_joining,
}

MUTABLE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "address",
    "date_of_birth",
    "date_of_joining",
    "position",
    "salary",
    "department_id",
)


def _scope(stmt):
    return stmt.join(Department, Employee.department_id == Department.id)


def _columns():
    return (
        Employee.id.label("id"),
        Employee.first_name.label("first_name"),
        Employee.last_name.label("last_name"),
        Employee.email.label("email"),
        Employee.phone_number.label("phone_number"),
        Employee.address.label("address"),
        Employee.date_of_birth.label("date_of_birth"),
        Employee.date_of_joining.label("date_of_joining"),
        Employee.position.label("position"),
        Employee.salary.label("salary"),
        Employee.department_id.label("department_id"),
        Department.name.label("department_name"),
        Employee.is_active.label("is_active"),
        Employee.created_at.label("created_at"),
        Employee.updated_at.label("updated_at"),
    )


def to_transport(employee: Employee) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        first_name=employee.first_name,
        last_name=employee.last_name,
        email=employee.email,
        phone_number=employee.phone_number,
        address=employee.address,
        date_of_birth=employee.date_of_birth,
        date_of_joining=employee.date_of_joining,
        position=employee.position,
        salary=employee.salary,
        department_id=employee.department_id,
        department_name=employee.department.name if employee.department else "",
        is_active=employee.is_active,
        created_at=employee.created_at,
        updated_at=employee.updated_at,
    )


def from_payload(payload) -> Employee:
    employee = Employee(**{name: getattr(payload, name) for name in MUTABLE_FIELDS})
    employee.is_active = True
    employee.created_at = utcnow()
    return employee


def update_entity(employee: Employee, payload) -> None:
    for name in MUTABLE_FIELDS:
        setattr(employee, name, getattr(payload, name))
    employee.is_active = getattr(payload, "is_active", employee.is_active)
    employee.updated_at = utcnow()


employee_mapping = EntityMapping(
    model=Employee,
    transport=EmployeeResponse,
    columns=_columns,
    to_transport=to_transport,
    from_payload=from_payload,
    update_entity=update_entity,
    scope=_scope,
    load_options=lambda: (contains_eager(Employee.department),),
    order_by=lambda: (Employee.id,),
    name="Employee",
)

employee_repository = Repository(employee_mapping)


async def email_exists(session: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Employee.id).where(func.lower(Employee.email) == email.lower())
    if exclude_id is not None:
        query = query.where(Employee.id != exclude_id)
    result = await session.execute(query.limit(1))
    return result.scalar() is not None


async def department_exists(session: AsyncSession, department_id: int) -> bool:
    result = await session.execute(select(Department.id).where(Department.id == department_id))
    return result.scalar() is not None


async def _check_payload(session: AsyncSession, payload, exclude_id: Optional[int] = None) -> None:
    if not await department_exists(session, payload.department_id):
        raise ValidationError(f"Department ID {payload.department_id} does not exist")
    if await email_exists(session, payload.email, exclude_id=exclude_id):
        raise ConflictError(f"Email {payload.email} is already in use")


async def create_employee(session: AsyncSession, payload) -> EmployeeResponse:
    await _check_payload(session, payload)
    return await employee_repository.create(session, payload)


async def update_employee(session: AsyncSession, employee_id: int, payload) -> Optional[EmployeeResponse]:
    if not await employee_repository.exists(session, employee_id):
        return None
    await _check_payload(session, payload, exclude_id=employee_id)
    return await employee_repository.update(session, employee_id, payload)


async def bulk_create_employees(session: AsyncSession, payloads: Sequence[Any]) -> List[EmployeeResponse]:
    """Create all employees or none of them."""
    emails = [p.email.lower() for p in payloads]
    duplicates = sorted({e for e in emails if emails.count(e) > 1})
    if duplicates:
        raise ConflictError(f"Duplicate emails in request: {', '.join(duplicates)}")

    result = await session.execute(select(Employee.email).where(func.lower(Employee.email).in_(emails)))
    existing = sorted(result.scalars().all())
    if existing:
        raise ConflictError(f"The following emails already exist: {', '.join(existing)}")

    department_ids = {p.department_id for p in payloads}
    result = await session.execute(select(Department.id).where(Department.id.in_(department_ids)))
    missing = department_ids - set(result.scalars().all())
    if missing:
        raise ValidationError(f"Unknown department IDs: {', '.join(str(d) for d in sorted(missing))}")

    return await employee_repository.create_many(session, payloads)


async def bulk_delete_employees(session: AsyncSession, employee_ids: Sequence[int]) -> int:
    deleted = 0
    for employee_id in employee_ids:
        if await employee_repository.delete(session, employee_id):
            deleted += 1
    logger.info(f"Bulk delete removed {deleted} of {len(employee_ids)} employees")
    return deleted


async def list_by_department(session: AsyncSession, department_id: int) -> List[EmployeeResponse]:
    return await employee_repository.list_all(session, Employee.department_id == department_id)


async def get_paged(
    session: AsyncSession,
    request: PageRequest,
    department_id: Optional[int] = None,
) -> Page[EmployeeResponse]:
    where = []
    if department_id is not None:
        where.append(Employee.department_id == department_id)

    if request.search and request.search.strip():
        term = f"%{request.search.strip().lower()}%"
        where.append(or_(
            func.lower(Employee.first_name).like(term),
            func.lower(Employee.last_name).like(term),
            func.lower(Employee.email).like(term),
            func.lower(Employee.position).like(term),
            func.lower(Department.name).like(term),
        ))

    column = SORT_COLUMNS.get((request.sort_by or "").lower(), SORT_COLUMNS["firstname"])()
    ordering = [column.desc() if request.sort_descending else column.asc(), Employee.id]

    total = await employee_repository.count(session, *where)
    data = await employee_repository.list_all(
        session,
        *where,
        order_by=ordering,
        skip=(request.page_number - 1) * request.page_size,
        limit=request.page_size,
    )
    return Page[EmployeeResponse](
        data=data,
        total_count=total,
        page_number=request.page_number,
        page_size=request.page_size,
    )
