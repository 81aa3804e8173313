# ems/api/departments.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.database import get_db
from ems.core.decorators import log_execution_time, log_requests
from ems.core.security import get_current_active_user, require_admin
from ems.models.model import User
from ems.repositories import departments as department_store
from ems.repositories.departments import department_repository
from ems.schemas.schema import (
    DepartmentCount,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    ResponseMessage,
)

router = APIRouter(
    prefix="/api/departments",
    tags=["departments"],
    responses={404: {"description": "Not found"}},
)


def _not_found(department_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Department with ID {department_id} not found"
    )


@router.get("/", response_model=List[DepartmentResponse])
@log_requests
@log_execution_time
async def get_departments(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await department_repository.list_all(db)


@router.get("/stats/employee-count", response_model=List[DepartmentCount])
@log_requests
@log_execution_time
async def get_employee_count_by_department(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await department_store.employee_count_by_department(db)


@router.get("/{department_id}", response_model=DepartmentResponse)
@log_requests
@log_execution_time
async def get_department(
    request: Request,
    department_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    department = await department_repository.get_by_id(db, department_id)
    if not department:
        raise _not_found(department_id)
    return department


@router.post("/", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
@log_requests
@log_execution_time
async def create_department(
    request: Request,
    department: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    created = await department_store.create_department(db, department)
    await db.commit()
    return created


@router.put("/{department_id}", response_model=DepartmentResponse)
@log_requests
@log_execution_time
async def update_department(
    request: Request,
    department_id: int,
    department: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    updated = await department_store.update_department(db, department_id, department)
    if not updated:
        raise _not_found(department_id)
    await db.commit()
    return updated


@router.delete("/{department_id}", response_model=ResponseMessage)
@log_requests
@log_execution_time
async def delete_department(
    request: Request,
    department_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    if not await department_store.delete_department(db, department_id):
        raise _not_found(department_id)
    await db.commit()
    return ResponseMessage(message=f"Department {department_id} deleted successfully")
