from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ems.core.exceptions import NotFoundError, ValidationError
from ems.models.model import PerformanceMetric
from ems.schemas.schema import PerformanceMetricCreate, PerformanceMetricUpdate
from ems.services import performance


def metric_payload(employee_id, **overrides):
    data = {
        "employee_id": employee_id,
        "year": 2024,
        "quarter": 2,
        "performance_score": Decimal("87.5"),
        "comments": "Consistently delivers quality work",
        "goals": "Lead a major project",
        "achievements": "Improved team efficiency by 20%",
    }
    data.update(overrides)
    return PerformanceMetricCreate(**data)


async def metric_count(database):
    async with database.session() as session:
        result = await session.execute(select(func.count(PerformanceMetric.id)))
        return result.scalar()


@pytest.mark.parametrize("score", [Decimal("150"), Decimal("-0.5"), Decimal("100.01")])
async def test_out_of_range_score_is_rejected_before_persistence(database, employee, score):
    with pytest.raises(ValidationError):
        async with database.session() as session:
            await performance.create_metric(session, metric_payload(employee.id, performance_score=score))

    assert await metric_count(database) == 0


@pytest.mark.parametrize("score", [Decimal("0"), Decimal("100")])
async def test_boundary_scores_are_accepted(database, employee, score):
    async with database.session() as session:
        metric = await performance.create_metric(session, metric_payload(employee.id, performance_score=score))
    assert metric.performance_score == score


async def test_quarter_out_of_range_is_rejected(database, employee):
    with pytest.raises(ValidationError):
        async with database.session() as session:
            await performance.create_metric(session, metric_payload(employee.id, quarter=5))


async def test_unknown_employee_is_not_found(database):
    with pytest.raises(NotFoundError):
        async with database.session() as session:
            await performance.create_metric(session, metric_payload(31337))


async def test_create_update_list_delete(database, employee):
    async with database.session() as session:
        created = await performance.create_metric(session, metric_payload(employee.id))
    assert created.employee_name == "John Doe"

    update = PerformanceMetricUpdate(year=2024, quarter=3, performance_score=Decimal("92"), comments="Better")
    async with database.session() as session:
        updated = await performance.update_metric(session, created.id, update)
    assert updated.quarter == 3
    assert updated.comments == "Better"
    assert updated.goals is None
    assert updated.created_at == created.created_at

    async with database.session() as session:
        assert [m.id for m in await performance.list_metrics(session, employee.id)] == [created.id]
        assert await performance.list_metrics(session, employee.id + 1) == []
        assert await performance.delete_metric(session, created.id) is True
        assert await performance.delete_metric(session, created.id) is False


async def test_update_with_invalid_score_leaves_row_untouched(database, employee):
    async with database.session() as session:
        created = await performance.create_metric(session, metric_payload(employee.id))

    with pytest.raises(ValidationError):
        async with database.session() as session:
            await performance.update_metric(
                session, created.id, PerformanceMetricUpdate(year=2024, quarter=2, performance_score=Decimal("101"))
            )

    async with database.session() as session:
        result = await session.execute(select(PerformanceMetric.performance_score))
        assert result.scalar() == Decimal("87.50")
