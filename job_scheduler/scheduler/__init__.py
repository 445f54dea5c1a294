"""
Job Scheduler Core Module.

Cron-driven HTTP job engine:
- Dependency Evaluator (dependency.should_run)
- HTTP Dispatcher (dispatcher.HttpDispatcher)
- Retry Executor (retry_controller.RetryExecutor)
- Runtime State Store (runtime_state.RuntimeStateStore)
- Job Registry & Trigger Engine (registry.JobRegistry)
- Reconciler (reconciler.Reconciler)
"""

from .entities import (
    HttpMethod,
    DependencyCondition,
    DependencyPolicy,
    FiringOutcome,
    JobDefinition,
    JobResult,
    JobRuntimeState,
    SchedulerStatus,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_WINDOW_MINUTES,
)
from .errors import (
    SchedulerError,
    InvalidScheduleError,
    InvalidJobDefinitionError,
    JobNotFoundError,
    DispatchError,
    TokenUnavailableError,
    ConfigSourceError,
)
from .runtime_state import RuntimeStateStore
from .dependency import should_run
from .placeholders import resolve_placeholders
from .dispatcher import HttpDispatcher
from .retry_controller import RetryExecutor, calculate_backoff_ms
from .trigger import CronTrigger, is_valid_cron
from .registry import JobRegistry, ScheduledBinding
from .reconciler import Reconciler, ReconcileResult, RegistrationFailure
from .service import SchedulerService

__all__ = [
    # Entities
    "HttpMethod",
    "DependencyCondition",
    "DependencyPolicy",
    "FiringOutcome",
    "JobDefinition",
    "JobResult",
    "JobRuntimeState",
    "SchedulerStatus",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_WINDOW_MINUTES",
    # Errors
    "SchedulerError",
    "InvalidScheduleError",
    "InvalidJobDefinitionError",
    "JobNotFoundError",
    "DispatchError",
    "TokenUnavailableError",
    "ConfigSourceError",
    # State
    "RuntimeStateStore",
    # Dependency
    "should_run",
    # Dispatch
    "resolve_placeholders",
    "HttpDispatcher",
    # Retry
    "RetryExecutor",
    "calculate_backoff_ms",
    # Trigger / Registry
    "CronTrigger",
    "is_valid_cron",
    "JobRegistry",
    "ScheduledBinding",
    # Reconcile
    "Reconciler",
    "ReconcileResult",
    "RegistrationFailure",
    # Service
    "SchedulerService",
]
