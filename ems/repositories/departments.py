# ems/repositories/departments.py
import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ems.core.exceptions import ConflictError
from ems.core.repository import EntityMapping, Repository
from ems.models.model import Department, Employee, utcnow
from ems.schemas.schema import DepartmentCount, DepartmentResponse

logger = logging.getLogger(__name__)


def _employee_count():
    return (
        select(func.count(Employee.id))
        .where(Employee.department_id == Department.id)
        .correlate(Department)
        .scalar_subquery()
    )


def _columns():
    return (
        Department.id.label("id"),
        Department.name.label("name"),
        Department.description.label("description"),
        Department.manager_name.label("manager_name"),
        _employee_count().label("employee_count"),
        Department.created_at.label("created_at"),
        Department.updated_at.label("updated_at"),
    )


def to_transport(department: Department) -> DepartmentResponse:
    return DepartmentResponse(
        id=department.id,
        name=department.name,
        description=department.description,
        manager_name=department.manager_name,
        employee_count=len(department.employees),
        created_at=department.created_at,
        updated_at=department.updated_at,
    )


def from_payload(payload) -> Department:
    return Department(
        name=payload.name,
        description=payload.description,
        manager_name=payload.manager_name,
        created_at=utcnow(),
    )


def update_entity(department: Department, payload) -> None:
    department.name = payload.name
    department.description = payload.description
    department.manager_name = payload.manager_name
    department.updated_at = utcnow()


department_mapping = EntityMapping(
    model=Department,
    transport=DepartmentResponse,
    columns=_columns,
    to_transport=to_transport,
    from_payload=from_payload,
    update_entity=update_entity,
    load_options=lambda: (selectinload(Department.employees),),
    order_by=lambda: (Department.name,),
    name="Department",
)

department_repository = Repository(department_mapping)


async def name_exists(session: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Department.id).where(func.lower(Department.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Department.id != exclude_id)
    result = await session.execute(query.limit(1))
    return result.scalar() is not None


async def create_department(session: AsyncSession, payload) -> DepartmentResponse:
    if await name_exists(session, payload.name):
        raise ConflictError(f"Department '{payload.name}' already exists")
    return await department_repository.create(session, payload)


async def update_department(session: AsyncSession, department_id: int, payload) -> Optional[DepartmentResponse]:
    if not await department_repository.exists(session, department_id):
        return None
    if await name_exists(session, payload.name, exclude_id=department_id):
        raise ConflictError(f"Department '{payload.name}' already exists")
    return await department_repository.update(session, department_id, payload)


async def delete_department(session: AsyncSession, department_id: int) -> bool:
    """Remove a department. Refused while it still owns employees."""
    if not await department_repository.exists(session, department_id):
        return False

    result = await session.execute(
        select(func.count(Employee.id)).where(Employee.department_id == department_id)
    )
    owned = result.scalar() or 0
    if owned:
        logger.warning(f"Refusing to delete department {department_id} with {owned} employees")
        raise ConflictError(f"Cannot delete department with {owned} existing employees")

    return await department_repository.delete(session, department_id)


async def employee_count_by_department(session: AsyncSession) -> List[DepartmentCount]:
    count = _employee_count()
    result = await session.execute(
        select(Department.name, count.label("count")).order_by(count.desc(), Department.name)
    )
    return [DepartmentCount(department=name, count=total) for name, total in result.all()]
