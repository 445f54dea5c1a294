"""
API Schemas package.

Pydantic models for response validation.
"""

from .scheduler import (
    HealthResponse,
    SchedulerStatusResponse,
    JobRuntimeStateResponse,
    JobResultResponse,
    JobDetailResponse,
    JobRunResponse,
)

__all__ = [
    "HealthResponse",
    "SchedulerStatusResponse",
    "JobRuntimeStateResponse",
    "JobResultResponse",
    "JobDetailResponse",
    "JobRunResponse",
]
