# ems/repositories/performance.py
from sqlalchemy.orm import contains_eager

from ems.core.repository import EntityMapping, Repository
from ems.models.model import Employee, PerformanceMetric, utcnow
from ems.schemas.schema import PerformanceMetricResponse

FIELDS = ("year", "quarter", "performance_score", "comments", "goals", "achievements")


def _scope(stmt):
    return stmt.join(Employee, PerformanceMetric.employee_id == Employee.id)


def _columns():
    return (
        PerformanceMetric.id.label("id"),
        PerformanceMetric.employee_id.label("employee_id"),
        (Employee.first_name + " " + Employee.last_name).label("employee_name"),
        PerformanceMetric.year.label("year"),
        PerformanceMetric.quarter.label("quarter"),
        PerformanceMetric.performance_score.label("performance_score"),
        PerformanceMetric.comments.label("comments"),
        PerformanceMetric.goals.label("goals"),
        PerformanceMetric.achievements.label("achievements"),
        PerformanceMetric.created_at.label("created_at"),
        PerformanceMetric.updated_at.label("updated_at"),
    )


def to_transport(metric: PerformanceMetric) -> PerformanceMetricResponse:
    return PerformanceMetricResponse(
        id=metric.id,
        employee_id=metric.employee_id,
        employee_name=metric.employee.full_name if metric.employee else "",
        created_at=metric.created_at,
        updated_at=metric.updated_at,
        **{name: getattr(metric, name) for name in FIELDS},
    )


def from_payload(payload) -> PerformanceMetric:
    metric = PerformanceMetric(employee_id=payload.employee_id, created_at=utcnow())
    for name in FIELDS:
        setattr(metric, name, getattr(payload, name))
    return metric


def update_entity(metric: PerformanceMetric, payload) -> None:
    for name in FIELDS:
        setattr(metric, name, getattr(payload, name))
    metric.updated_at = utcnow()


performance_mapping = EntityMapping(
    model=PerformanceMetric,
    transport=PerformanceMetricResponse,
    columns=_columns,
    to_transport=to_transport,
    from_payload=from_payload,
    update_entity=update_entity,
    scope=_scope,
    load_options=lambda: (contains_eager(PerformanceMetric.employee),),
    order_by=lambda: (PerformanceMetric.year.desc(), PerformanceMetric.quarter.desc(), PerformanceMetric.id),
    name="PerformanceMetric",
)

performance_repository = Repository(performance_mapping)
