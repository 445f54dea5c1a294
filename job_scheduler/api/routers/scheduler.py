"""
Scheduler router for status and manual trigger APIs.

Endpoints:
- GET  /status            Registry summary
- GET  /jobs/{name}       Binding, last result and runtime state of one job
- POST /jobs/{name}/run   Fire a registered job now (non-blocking)
"""

from fastapi import APIRouter, Depends, HTTPException, status

from job_scheduler.scheduler.errors import JobNotFoundError
from job_scheduler.scheduler.service import SchedulerService

from ..dependencies import get_scheduler_service
from ..schemas.scheduler import (
    JobDetailResponse,
    JobResultResponse,
    JobRunResponse,
    JobRuntimeStateResponse,
    SchedulerStatusResponse,
)


router = APIRouter()


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(service: SchedulerService = Depends(get_scheduler_service)):
    """
    Get scheduler status.

    Returns:
    - total_jobs: Number of registered jobs
    - running_jobs: Jobs whose timer is armed
    - job_names: Registered job names
    """
    scheduler_status = service.get_status()

    return SchedulerStatusResponse(
        total_jobs=scheduler_status.total_jobs,
        running_jobs=scheduler_status.running_jobs,
        job_names=scheduler_status.job_names,
        jobs_file=scheduler_status.jobs_file,
        last_config_update=scheduler_status.last_config_update,
    )


@router.get("/jobs/{name}", response_model=JobDetailResponse)
async def get_job(name: str, service: SchedulerService = Depends(get_scheduler_service)):
    """
    Get one job's binding and run history.

    A job that was removed but ran earlier still reports its runtime state.
    """
    binding = service.registry.get(name)
    state = service.get_runtime_state(name)

    if binding is None and state is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {name}")

    response = JobDetailResponse(
        name=name,
        registered=binding is not None,
        running=service.is_running(name),
    )

    if binding is not None:
        definition = binding.definition
        response.schedule = definition.schedule
        response.method = definition.method.value
        response.url = definition.url
        response.next_run_at = service.registry.next_fire_time(name)
        if definition.depends_on is not None:
            response.depends_on = {
                "job": definition.depends_on.job,
                "window_minutes": definition.depends_on.window_minutes,
                "condition": definition.depends_on.condition.value,
            }

    outcome = service.registry.last_outcome(name)
    if outcome is not None:
        response.last_outcome = outcome.value

    result = service.registry.last_result(name)
    if result is not None:
        response.last_result = JobResultResponse(
            success=result.success,
            timestamp=result.timestamp,
            execution_time_ms=result.execution_time_ms,
            attempts=result.attempts,
            status_code=result.status_code,
            error=result.error,
        )

    if state is not None:
        response.state = JobRuntimeStateResponse(
            last_run_at=state.last_run_at,
            last_success_at=state.last_success_at,
            last_failure_at=state.last_failure_at,
        )

    return response


@router.post(
    "/jobs/{name}/run",
    response_model=JobRunResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def run_job(name: str, service: SchedulerService = Depends(get_scheduler_service)):
    """
    Fire a registered job immediately.

    Dependency and overlap checks apply as for a timer firing.
    """
    try:
        service.run_now(name)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return JobRunResponse(name=name, accepted=True, message="Job run started")
