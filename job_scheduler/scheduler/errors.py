"""
Scheduler-specific exceptions.

Configuration errors (InvalidScheduleError, InvalidJobDefinitionError) are
raised per job at registration; execution errors (DispatchError) are retried
by the RetryExecutor and never escape a firing.
"""

from typing import Optional


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class InvalidScheduleError(SchedulerError):
    """Raised when a cron expression does not parse."""

    def __init__(self, job_name: str, expression: str, reason: Optional[str] = None):
        self.job_name = job_name
        self.expression = expression
        self.reason = reason
        message = f"Invalid cron expression for job '{job_name}': {expression!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidJobDefinitionError(SchedulerError):
    """
    Raised when a job definition is missing a required field or carries a
    value the engine cannot use.
    """

    def __init__(self, job_name: str, reason: str):
        self.job_name = job_name
        self.reason = reason
        super().__init__(f"Invalid job definition '{job_name}': {reason}")


class JobNotFoundError(SchedulerError):
    """Raised when a requested job is not registered."""

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job not found: {job_name}")


class DispatchError(SchedulerError):
    """
    Raised when an HTTP exchange does not complete.

    Covers timeouts, refused connections and DNS failures. A response with
    any status code is not a DispatchError.
    """

    def __init__(self, job_name: str, message: str, status_code: Optional[int] = None):
        self.job_name = job_name
        self.status_code = status_code
        super().__init__(message)


class TokenUnavailableError(SchedulerError):
    """Raised when no bearer token can be provided for a request."""
    pass


class ConfigSourceError(SchedulerError):
    """Raised when the job file cannot be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load jobs from {path}: {reason}")
