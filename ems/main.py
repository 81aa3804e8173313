# ems/main.py
import logging
import time
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ems.api import attendance, auth, departments, employees, performance, reports
from ems.core.config import Settings, configure_logging, settings as default_settings
from ems.core.database import Database
from ems.core.exceptions import (
    ConflictError,
    EMSError,
    NotFoundError,
    StoreError,
    UnsupportedFormatError,
    ValidationError,
)
from ems.services.attendance import AttendanceEngine, Clock, system_clock
from ems.services.reports import ReportGenerator, ReportPipeline, default_generators
from ems.services.seeding import seed_database

logger = logging.getLogger(__name__)

VERSION = "2.0.0"

ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    UnsupportedFormatError: status.HTTP_400_BAD_REQUEST,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def handle_domain_error(request: Request, exc: EMSError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app(
    database: Optional[Database] = None,
    settings: Optional[Settings] = None,
    clock: Clock = system_clock,
    generators: Optional[Mapping[str, ReportGenerator]] = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting server...")
        db = database or Database.from_settings(settings)
        app.state.db = db

        await db.init_db()
        if settings.SEED_ON_STARTUP:
            async with db.session() as session:
                await seed_database(session, settings)

        yield

        logger.info("Shutting down, closing connections...")
        if database is None:
            await db.close()

    app = FastAPI(
        title="Employee Management System API",
        description="Employees, departments, attendance tracking and report exports",
        version=VERSION,
        lifespan=lifespan
    )
    app.state.attendance = AttendanceEngine(clock=clock, tz=settings.ATTENDANCE_TIMEZONE)
    app.state.reports = ReportPipeline(
        generators if generators is not None else default_generators(settings.PDF_RENDER_TIMEOUT_MS)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    for error_class in ERROR_STATUS:
        app.add_exception_handler(error_class, handle_domain_error)

    app.include_router(auth.router)
    app.include_router(employees.router)
    app.include_router(departments.router)
    app.include_router(attendance.router)
    app.include_router(performance.router)
    app.include_router(reports.router)

    @app.get("/", tags=["health"])
    async def health_check():
        return {
            "status": "ok",
            "message": "Server is running",
            "version": VERSION
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ems.main:app", host="0.0.0.0", port=8000, reload=True)
