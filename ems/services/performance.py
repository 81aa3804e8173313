# ems/services/performance.py
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.exceptions import NotFoundError, ValidationError
from ems.models.model import Employee, PerformanceMetric
from ems.repositories.performance import performance_repository
from ems.schemas.schema import PerformanceMetricResponse

logger = logging.getLogger(__name__)

MIN_SCORE = Decimal("0")
MAX_SCORE = Decimal("100")


def validate_metric(payload) -> None:
    """Reject out-of-range periods and scores before anything is written."""
    score = Decimal(str(payload.performance_score))
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f"Performance score must be between 0 and 100, got {payload.performance_score}")
    if not 1 <= payload.quarter <= 4:
        raise ValidationError(f"Quarter must be between 1 and 4, got {payload.quarter}")


async def create_metric(session: AsyncSession, payload) -> PerformanceMetricResponse:
    validate_metric(payload)
    if not await session.get(Employee, payload.employee_id):
        raise NotFoundError(f"Employee with ID {payload.employee_id} not found")
    return await performance_repository.create(session, payload)


async def update_metric(session: AsyncSession, metric_id: int, payload) -> Optional[PerformanceMetricResponse]:
    validate_metric(payload)
    return await performance_repository.update(session, metric_id, payload)


async def delete_metric(session: AsyncSession, metric_id: int) -> bool:
    return await performance_repository.delete(session, metric_id)


async def list_metrics(session: AsyncSession, employee_id: Optional[int] = None) -> List[PerformanceMetricResponse]:
    if employee_id is None:
        return await performance_repository.list_all(session)
    return await performance_repository.list_all(session, PerformanceMetric.employee_id == employee_id)
