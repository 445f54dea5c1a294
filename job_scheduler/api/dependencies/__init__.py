"""
FastAPI dependencies.
"""

from fastapi import HTTPException, Request, status

from job_scheduler.scheduler.service import SchedulerService


def get_scheduler_service(request: Request) -> SchedulerService:
    """
    Get the SchedulerService attached to the running app.

    Raises:
        HTTPException: 503 if the app was created without a service
    """
    service = getattr(request.app.state, "scheduler_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler service not initialized",
        )
    return service


__all__ = ["get_scheduler_service"]
