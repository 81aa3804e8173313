# ems/api/reports.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.database import get_db
from ems.core.decorators import log_execution_time, log_requests, rate_limit
from ems.core.security import get_current_active_user
from ems.models.model import User
from ems.schemas.schema import ReportCatalog, ReportFormatInfo
from ems.services.attendance import AttendanceEngine
from ems.services.reports import ReportParams, ReportPipeline

router = APIRouter(
    prefix="/api/reports",
    tags=["reports"],
    responses={404: {"description": "Not found"}},
)


def get_report_pipeline(request: Request) -> ReportPipeline:
    return request.app.state.reports


@router.get("/", response_model=ReportCatalog)
async def get_catalog(
    pipeline: ReportPipeline = Depends(get_report_pipeline),
    current_user: User = Depends(get_current_active_user)
):
    return ReportCatalog(
        datasets=pipeline.dataset_names,
        formats=[
            ReportFormatInfo(format=name, content_type=g.content_type, extension=g.extension)
            for name, g in sorted(pipeline.generators.items())
        ],
    )


@router.get("/{dataset}/{fmt}")
@log_requests
@log_execution_time
@rate_limit(calls=30, period=60)
async def download_report(
    request: Request,
    dataset: str,
    fmt: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    employee_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_db),
    pipeline: ReportPipeline = Depends(get_report_pipeline),
    current_user: User = Depends(get_current_active_user)
):
    engine: AttendanceEngine = request.app.state.attendance
    now = engine.local_now()
    params = ReportParams(
        today=now.date(),
        generated_at=now,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
    )
    report = await pipeline.generate(db, dataset, fmt, params)
    return Response(
        content=report.content,
        media_type=report.content_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )
