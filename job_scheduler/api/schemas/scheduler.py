"""
Scheduler API schemas.

Responses for /health, /status and /jobs/{name} endpoints.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness probe response."""

    status: str = Field(..., description="'healthy' while the process is serving")
    timestamp: datetime = Field(..., description="Server time")
    version: str = Field(..., description="Scheduler version")
    scheduler_started: bool = Field(..., description="Whether timers have been armed")
    total_jobs: int = Field(..., description="Number of registered jobs")


class SchedulerStatusResponse(BaseModel):
    """Response for GET /status."""

    total_jobs: int = Field(..., description="Number of registered jobs")
    running_jobs: int = Field(..., description="Number of jobs with an armed timer")
    job_names: List[str] = Field(default_factory=list)
    jobs_file: Optional[str] = Field(default=None, description="Job file being watched")
    last_config_update: Optional[datetime] = Field(
        default=None, description="When the job set was last replaced"
    )


class JobRuntimeStateResponse(BaseModel):
    """Last recorded run timestamps for one job."""

    last_run_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None


class JobResultResponse(BaseModel):
    """Terminal outcome of the job's most recent executed firing."""

    success: bool
    timestamp: datetime
    execution_time_ms: int
    attempts: int
    status_code: Optional[int] = None
    error: Optional[str] = None


class JobDetailResponse(BaseModel):
    """Response for GET /jobs/{name}."""

    name: str
    registered: bool = Field(..., description="Whether a binding exists")
    running: bool = Field(..., description="Whether the binding's timer is armed")
    schedule: Optional[str] = None
    method: Optional[str] = None
    url: Optional[str] = None
    depends_on: Optional[dict[str, Any]] = None
    next_run_at: Optional[datetime] = None
    last_outcome: Optional[str] = None
    last_result: Optional[JobResultResponse] = None
    state: Optional[JobRuntimeStateResponse] = None


class JobRunResponse(BaseModel):
    """Response for POST /jobs/{name}/run."""

    name: str
    accepted: bool
    message: str
