"""
Scheduler Domain Entities.

- JobDefinition: What to call, how, and when (immutable per registration cycle)
- DependencyPolicy: Recency-window gate on another job's outcome
- JobRuntimeState: Last run / success / failure timestamps for one job
- JobResult: Terminal outcome of one firing's attempt sequence
- SchedulerStatus: Snapshot exposed to the process boundary

Timestamps are timezone-aware UTC datetimes.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .errors import InvalidJobDefinitionError


DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 3
DEFAULT_WINDOW_MINUTES = 180


class HttpMethod(str, Enum):
    """HTTP methods a job may use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"

    @property
    def allows_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


class DependencyCondition(str, Enum):
    """
    When a dependent job is allowed to run, judged on the other job's window.

    - NOT_RAN: the other job has not run within the window
    - FAILED: the other job ran within the window but did not succeed
    - NOT_RAN_OR_FAILED: either of the above
    """

    NOT_RAN = "not_ran"
    FAILED = "failed"
    NOT_RAN_OR_FAILED = "not_ran_or_failed"


class FiringOutcome(str, Enum):
    """What happened to a single timer firing."""

    EXECUTED = "EXECUTED"
    SKIPPED = "SKIPPED"
    OVERLAP_SKIPPED = "OVERLAP_SKIPPED"
    ERROR = "ERROR"


def utc_now() -> datetime:
    """Get current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _positive_int(raw: dict, key: str, job_name: str) -> Optional[int]:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidJobDefinitionError(job_name, f"'{key}' must be a positive integer")
    return value


@dataclass(frozen=True)
class DependencyPolicy:
    """Gate a job on the recent outcome of another job."""

    job: str
    window_minutes: int = DEFAULT_WINDOW_MINUTES
    condition: DependencyCondition = DependencyCondition.NOT_RAN_OR_FAILED

    @classmethod
    def from_dict(cls, raw: Any, job_name: str) -> "DependencyPolicy":
        """
        Build from a ``dependsOn`` mapping.

        Raises:
            InvalidJobDefinitionError: If the mapping is malformed
        """
        if not isinstance(raw, dict):
            raise InvalidJobDefinitionError(job_name, "'dependsOn' must be a mapping")

        target = raw.get("job")
        if not isinstance(target, str) or not target:
            raise InvalidJobDefinitionError(job_name, "'dependsOn.job' is required")

        window = _positive_int(raw, "windowMinutes", job_name)

        condition_raw = raw.get("condition", DependencyCondition.NOT_RAN_OR_FAILED.value)
        try:
            condition = DependencyCondition(condition_raw)
        except ValueError:
            raise InvalidJobDefinitionError(
                job_name, f"unknown dependency condition: {condition_raw!r}"
            ) from None

        return cls(
            job=target,
            window_minutes=window if window is not None else DEFAULT_WINDOW_MINUTES,
            condition=condition,
        )


@dataclass(frozen=True)
class JobDefinition:
    """
    A scheduled HTTP call.

    Captured by value when a firing starts, so a reconfiguration that
    replaces the job never changes a firing already in flight.
    """

    name: str
    schedule: str
    url: str
    method: HttpMethod = HttpMethod.GET
    headers: dict = field(default_factory=dict)
    data: Any = None
    timeout_ms: Optional[int] = None
    max_retries: Optional[int] = None
    enabled: bool = True
    depends_on: Optional[DependencyPolicy] = None
    description: Optional[str] = None

    @property
    def effective_timeout_ms(self) -> int:
        return self.timeout_ms or DEFAULT_TIMEOUT_MS

    @property
    def effective_max_retries(self) -> int:
        return max(self.max_retries or DEFAULT_MAX_RETRIES, 1)

    def with_schedule(self, schedule: str) -> "JobDefinition":
        return replace(self, schedule=schedule)

    @classmethod
    def from_dict(
        cls,
        raw: Any,
        default_timeout_ms: Optional[int] = None,
        default_retries: Optional[int] = None,
        default_headers: Optional[dict] = None,
    ) -> "JobDefinition":
        """
        Build a JobDefinition from a job-file mapping.

        Job-level ``headers`` are merged over ``default_headers``; ``timeout``
        and ``retries`` fall back to the given defaults.

        Args:
            raw: Mapping with keys name, schedule, url, method, headers, data,
                timeout, retries, enabled, description, dependsOn
            default_timeout_ms: Timeout used when the job sets none
            default_retries: Retry ceiling used when the job sets none
            default_headers: Headers applied under the job's own

        Raises:
            InvalidJobDefinitionError: On a missing required field or bad value
        """
        if not isinstance(raw, dict):
            raise InvalidJobDefinitionError("<unknown>", "job entry must be a mapping")

        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidJobDefinitionError("<unknown>", "'name' is required")

        for key in ("schedule", "url"):
            value = raw.get(key)
            if not isinstance(value, str) or not value.strip():
                raise InvalidJobDefinitionError(name, f"'{key}' is required")

        method_raw = str(raw.get("method", HttpMethod.GET.value)).upper()
        try:
            method = HttpMethod(method_raw)
        except ValueError:
            raise InvalidJobDefinitionError(
                name, f"unsupported HTTP method: {method_raw}"
            ) from None

        headers = raw.get("headers") or {}
        if not isinstance(headers, dict):
            raise InvalidJobDefinitionError(name, "'headers' must be a mapping")
        merged_headers = {
            **{str(k): str(v) for k, v in (default_headers or {}).items()},
            **{str(k): str(v) for k, v in headers.items()},
        }

        timeout_ms = _positive_int(raw, "timeout", name) or default_timeout_ms
        max_retries = _positive_int(raw, "retries", name) or default_retries

        depends_raw = raw.get("dependsOn")
        depends_on = (
            DependencyPolicy.from_dict(depends_raw, name) if depends_raw is not None else None
        )

        return cls(
            name=name.strip(),
            schedule=raw["schedule"].strip(),
            url=raw["url"].strip(),
            method=method,
            headers=merged_headers,
            data=raw.get("data"),
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            enabled=raw.get("enabled") is not False,
            depends_on=depends_on,
            description=raw.get("description"),
        )


@dataclass
class JobRuntimeState:
    """
    In-memory run history of one job.

    last_success_at and last_failure_at are never cleared; a run sets only
    the one matching its outcome, so the other may be stale.
    """

    last_run_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None

    def copy(self) -> "JobRuntimeState":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "last_run_at": _isoformat(self.last_run_at),
            "last_success_at": _isoformat(self.last_success_at),
            "last_failure_at": _isoformat(self.last_failure_at),
        }


@dataclass
class JobResult:
    """Terminal outcome of one firing."""

    success: bool
    job_name: str
    timestamp: datetime
    execution_time_ms: int
    attempts: int
    status_code: Optional[int] = None
    response: Any = None
    error: Optional[str] = None


@dataclass
class SchedulerStatus:
    """Snapshot of the registry for health/status reporting."""

    total_jobs: int
    running_jobs: int
    job_names: list
    jobs_file: Optional[str] = None
    last_config_update: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "total_jobs": self.total_jobs,
            "running_jobs": self.running_jobs,
            "job_names": list(self.job_names),
            "jobs_file": self.jobs_file,
            "last_config_update": _isoformat(self.last_config_update),
        }
