"""
Scheduler Service - Main entry point for the Job Scheduler.

This service wires the engine components:
- RuntimeStateStore (in-memory run history)
- HttpDispatcher (single authenticated request)
- RetryExecutor (attempt loop with backoff)
- JobRegistry (cron bindings and firing)
- Reconciler (replace-all from the job source)

Usage:
    service = SchedulerService.create(token_provider, timezone="America/Chicago")
    service.replace_all(definitions)
    service.start()
    # ... timers fire in the background ...
    service.stop()
"""

import logging
import time
from datetime import datetime
from typing import Callable, Iterable, Optional, Union
from zoneinfo import ZoneInfo

import httpx

from .dispatcher import HttpDispatcher
from .entities import JobDefinition, JobRuntimeState, SchedulerStatus, utc_now
from .reconciler import Reconciler, ReconcileResult
from .registry import DEFAULT_TIMEZONE, OVERLAP_SKIP, JobRegistry, ScheduledBinding
from .retry_controller import RetryExecutor, TokenProviderProtocol
from .runtime_state import RuntimeStateStore


logger = logging.getLogger(__name__)


class SchedulerService:
    """
    Facade over one scheduler engine instance.

    Every instance owns its own registry and state store; nothing is shared
    between instances.
    """

    def __init__(
        self,
        state: RuntimeStateStore,
        dispatcher: HttpDispatcher,
        executor: RetryExecutor,
        registry: JobRegistry,
        reconciler: Reconciler,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize SchedulerService with all components.

        Use SchedulerService.create() for convenient construction.
        """
        self.state = state
        self.dispatcher = dispatcher
        self.executor = executor
        self.registry = registry
        self.reconciler = reconciler
        self.http_client = http_client

        self.jobs_file: Optional[str] = None
        self.last_config_update: Optional[datetime] = None
        self._started = False

    @classmethod
    def create(
        cls,
        token_provider: TokenProviderProtocol,
        timezone: str = DEFAULT_TIMEZONE,
        overlap: str = OVERLAP_SKIP,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable = utc_now,
    ) -> "SchedulerService":
        """
        Create a SchedulerService with all components wired together.

        Args:
            token_provider: Supplies the bearer token at dispatch time
            timezone: IANA zone for cron triggers and date placeholders
            overlap: Same-job overlap policy ("skip" or "parallel")
            http_client: Shared httpx client (one is created if None)
            sleep: Backoff sleep, injectable for tests
            clock: Returns the current aware datetime

        Returns:
            Configured SchedulerService
        """
        tz = ZoneInfo(timezone)
        client = http_client if http_client is not None else httpx.Client()

        state = RuntimeStateStore()
        dispatcher = HttpDispatcher(timezone=tz, client=client, clock=clock)
        executor = RetryExecutor(
            dispatcher=dispatcher,
            state=state,
            token_provider=token_provider,
            sleep=sleep,
            clock=clock,
        )
        registry = JobRegistry(
            executor=executor,
            state=state,
            timezone=tz,
            overlap=overlap,
            clock=clock,
        )
        reconciler = Reconciler(registry, clock=clock)

        return cls(
            state=state,
            dispatcher=dispatcher,
            executor=executor,
            registry=registry,
            reconciler=reconciler,
            http_client=client,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> int:
        """
        Arm every registered job.

        Returns:
            Number of jobs armed
        """
        logger.info("Starting job scheduler")
        started = self.registry.start_all()
        self._started = True
        return started

    def stop(self, timeout: float = 30.0) -> bool:
        """
        Stop all timers, then wait for in-flight firings.

        In-flight firings are never cancelled; after ``timeout`` seconds
        they are abandoned to finish on their own.

        Returns:
            True if every in-flight firing finished within ``timeout``
        """
        logger.info("Stopping job scheduler")
        self.registry.stop_all()
        self._started = False

        drained = self.registry.wait_for_idle(timeout=timeout)
        if not drained:
            logger.warning(
                f"{self.registry.in_flight_count} firing(s) still running after {timeout}s"
            )
        return drained

    def close(self) -> None:
        """Release the HTTP client."""
        if self.http_client is not None:
            self.http_client.close()

    @property
    def started(self) -> bool:
        return self._started

    # =========================================================================
    # Job Operations
    # =========================================================================

    def replace_all(self, definitions: Iterable[Union[JobDefinition, dict]]) -> ReconcileResult:
        """Replace every registered job; see Reconciler.replace_all."""
        result = self.reconciler.replace_all(definitions)
        self.last_config_update = result.reconciled_at
        return result

    def register(self, definition: JobDefinition) -> ScheduledBinding:
        return self.registry.register(definition)

    def remove(self, name: str) -> bool:
        return self.registry.remove(name)

    def run_now(self, name: str):
        """Fire a registered job immediately in the background."""
        return self.registry.run_now(name)

    # =========================================================================
    # Status
    # =========================================================================

    def is_running(self, name: str) -> bool:
        """Whether ``name`` has an armed timer."""
        return self.registry.is_armed(name)

    def get_runtime_state(self, name: str) -> Optional[JobRuntimeState]:
        return self.state.get(name)

    def get_status(self) -> SchedulerStatus:
        job_names = self.registry.names()
        running_jobs = len([name for name in job_names if self.is_running(name)])

        return SchedulerStatus(
            total_jobs=len(job_names),
            running_jobs=running_jobs,
            job_names=job_names,
            jobs_file=self.jobs_file,
            last_config_update=self.last_config_update,
        )
