# ems/api/performance.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.database import get_db
from ems.core.decorators import log_execution_time, log_requests
from ems.core.security import get_current_active_user, require_admin
from ems.models.model import User
from ems.repositories.performance import performance_repository
from ems.schemas.schema import (
    PerformanceMetricCreate,
    PerformanceMetricResponse,
    PerformanceMetricUpdate,
    ResponseMessage,
)
from ems.services import performance

router = APIRouter(
    prefix="/api/performance-metrics",
    tags=["performance"],
    responses={404: {"description": "Not found"}},
)


def _not_found(metric_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Performance metric with ID {metric_id} not found"
    )


@router.get("/", response_model=List[PerformanceMetricResponse])
@log_requests
@log_execution_time
async def get_metrics(
    request: Request,
    employee_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await performance.list_metrics(db, employee_id)


@router.get("/{metric_id}", response_model=PerformanceMetricResponse)
@log_requests
@log_execution_time
async def get_metric(
    request: Request,
    metric_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    metric = await performance_repository.get_by_id(db, metric_id)
    if not metric:
        raise _not_found(metric_id)
    return metric


@router.post("/", response_model=PerformanceMetricResponse, status_code=status.HTTP_201_CREATED)
@log_requests
@log_execution_time
async def create_metric(
    request: Request,
    payload: PerformanceMetricCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    metric = await performance.create_metric(db, payload)
    await db.commit()
    return metric


@router.put("/{metric_id}", response_model=PerformanceMetricResponse)
@log_requests
@log_execution_time
async def update_metric(
    request: Request,
    metric_id: int,
    payload: PerformanceMetricUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    metric = await performance.update_metric(db, metric_id, payload)
    if not metric:
        raise _not_found(metric_id)
    await db.commit()
    return metric


@router.delete("/{metric_id}", response_model=ResponseMessage)
@log_requests
@log_execution_time
async def delete_metric(
    request: Request,
    metric_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    if not await performance.delete_metric(db, metric_id):
        raise _not_found(metric_id)
    await db.commit()
    return ResponseMessage(message=f"Performance metric {metric_id} deleted successfully")
