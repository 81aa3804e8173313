# ems/api/employees.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.database import get_db
from ems.core.decorators import log_execution_time, log_requests, rate_limit
from ems.core.security import get_current_active_user, require_admin
from ems.models.model import Employee, User
from ems.repositories import employees as employee_store
from ems.repositories.employees import employee_repository
from ems.schemas.schema import (
    EmployeeBulkCreate,
    EmployeeBulkDelete,
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    Page,
    PageRequest,
    ResponseMessage,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/employees",
    tags=["employees"],
    responses={404: {"description": "Not found"}},
)


@router.get("/", response_model=List[EmployeeResponse])
@log_requests
@log_execution_time
@rate_limit(calls=1000, period=60)
async def get_employees(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    department_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    where = [] if department_id is None else [Employee.department_id == department_id]
    return await employee_repository.list_all(db, *where, skip=skip, limit=limit)


@router.get("/paged", response_model=Page[EmployeeResponse])
@log_requests
@log_execution_time
@rate_limit(calls=1000, period=60)
async def get_employees_paged(
    request: Request,
    page_number: int = 1,
    page_size: int = 10,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_descending: bool = False,
    department_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    page_request = PageRequest(
        page_number=page_number,
        page_size=page_size,
        search=search,
        sort_by=sort_by,
        sort_descending=sort_descending,
    )
    return await employee_store.get_paged(db, page_request, department_id=department_id)


@router.get("/department/{department_id}", response_model=List[EmployeeResponse])
@log_requests
@log_execution_time
async def get_employees_by_department(
    request: Request,
    department_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await employee_store.list_by_department(db, department_id)


@router.get("/{employee_id}", response_model=EmployeeResponse)
@log_requests
@log_execution_time
@rate_limit(calls=2000, period=60)
async def get_employee(
    request: Request,
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    employee = await employee_repository.get_by_id(db, employee_id)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee with ID {employee_id} not found"
        )
    return employee


@router.post("/", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
@log_requests
@log_execution_time
@rate_limit(calls=1000, period=60)
async def create_employee(
    request: Request,
    employee: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    created = await employee_store.create_employee(db, employee)
    await db.commit()
    return created


@router.post("/bulk", response_model=List[EmployeeResponse], status_code=status.HTTP_201_CREATED)
@log_requests
@log_execution_time
@rate_limit(calls=100, period=60)
async def create_employees_bulk(
    request: Request,
    payload: EmployeeBulkCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    created = await employee_store.bulk_create_employees(db, payload.employees)
    await db.commit()
    logger.info(f"Bulk created {len(created)} employees")
    return created


@router.post("/bulk-delete", response_model=ResponseMessage)
@log_requests
@log_execution_time
async def delete_employees_bulk(
    request: Request,
    payload: EmployeeBulkDelete,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    deleted = await employee_store.bulk_delete_employees(db, payload.employee_ids)
    await db.commit()
    return ResponseMessage(message=f"Deleted {deleted} of {len(payload.employee_ids)} employees")


@router.put("/{employee_id}", response_model=EmployeeResponse)
@log_requests
@log_execution_time
@rate_limit(calls=500, period=60)
async def update_employee(
    request: Request,
    employee_id: int,
    employee: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    updated = await employee_store.update_employee(db, employee_id, employee)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee with ID {employee_id} not found"
        )
    await db.commit()
    return updated


@router.delete("/{employee_id}", response_model=ResponseMessage)
@log_requests
@log_execution_time
@rate_limit(calls=100, period=60)
async def delete_employee(
    request: Request,
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    deleted = await employee_repository.delete(db, employee_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee with ID {employee_id} not found"
        )
    await db.commit()
    return ResponseMessage(message=f"Employee {employee_id} deleted successfully")
