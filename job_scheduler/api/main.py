"""
FastAPI application for the scheduler process.

Health and status endpoints only; jobs are configured through the job file.
"""

import asyncio
import functools
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI

from job_scheduler import __version__
from job_scheduler.infra.yaml_source import YamlJobSource
from job_scheduler.scheduler.service import SchedulerService

from .dependencies import get_scheduler_service
from .routers import scheduler
from .schemas.scheduler import HealthResponse


tags_metadata = [
    {
        "name": "scheduler",
        "description": "Scheduler status, per-job run history and manual triggers",
    },
]


def create_app(
    service: SchedulerService,
    source: Optional[YamlJobSource] = None,
    shutdown_timeout: float = 30.0,
) -> FastAPI:
    """
    Create the API app for ``service``.

    When served, the app's lifespan loads jobs from ``source`` (if given),
    starts the scheduler, and on shutdown stops timers and drains in-flight
    firings for up to ``shutdown_timeout`` seconds.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # File loading, timer setup and draining block; keep them off the event loop
        loop = asyncio.get_running_loop()

        # Startup
        if source is not None:
            service.jobs_file = str(source.path)
            await loop.run_in_executor(None, source.initialize, service.replace_all)
        await loop.run_in_executor(None, service.start)

        yield

        # Shutdown
        if source is not None:
            await loop.run_in_executor(None, source.stop_watching)
        await loop.run_in_executor(None, functools.partial(service.stop, timeout=shutdown_timeout))

    app = FastAPI(
        title="Job Scheduler",
        description="Cron-driven HTTP job scheduler: health and status endpoints.",
        version=__version__,
        lifespan=lifespan,
        openapi_tags=tags_metadata,
    )
    app.state.scheduler_service = service

    @app.get("/health", response_model=HealthResponse)
    async def health_check(scheduler_service: SchedulerService = Depends(get_scheduler_service)):
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc),
            version=__version__,
            scheduler_started=scheduler_service.started,
            total_jobs=len(scheduler_service.registry),
        )

    app.include_router(scheduler.router, tags=["scheduler"])

    return app
