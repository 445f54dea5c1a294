"""
Job Registry & Trigger Engine.

Owns the set of currently scheduled jobs and their live timers.

Binding lifecycle:
    Unregistered → Armed → Firing → Armed ... → Stopped/Removed

Each firing runs on its own thread:
    dependency check → RetryExecutor → HttpDispatcher → state update

Same-job overlap policy:
- "skip" (default): a firing that arrives while the previous firing of the
  same job is still in progress is dropped and logged
- "parallel": firings overlap freely; state writes are last-write-wins
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .dependency import should_run
from .entities import FiringOutcome, JobDefinition, JobResult, utc_now
from .errors import InvalidJobDefinitionError, InvalidScheduleError, JobNotFoundError
from .retry_controller import RetryExecutor
from .runtime_state import RuntimeStateStore
from .trigger import CronTrigger, is_valid_cron


logger = logging.getLogger(__name__)


DEFAULT_TIMEZONE = "America/Chicago"
OVERLAP_SKIP = "skip"
OVERLAP_PARALLEL = "parallel"
VALID_OVERLAPS = {OVERLAP_SKIP, OVERLAP_PARALLEL}


@dataclass
class ScheduledBinding:
    """Live association between a JobDefinition and its timer."""

    definition: JobDefinition
    trigger: CronTrigger
    registered_at: datetime = field(default_factory=utc_now)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def armed(self) -> bool:
        return self.trigger.running


class JobRegistry:
    """
    Authoritative map of job name → ScheduledBinding.

    Holds at most one binding per name. Re-registering a name stops and
    replaces the previous binding.
    """

    def __init__(
        self,
        executor: RetryExecutor,
        state: RuntimeStateStore,
        timezone: ZoneInfo = ZoneInfo(DEFAULT_TIMEZONE),
        overlap: str = OVERLAP_SKIP,
        clock: Callable = utc_now,
    ):
        """
        Initialize JobRegistry.

        Args:
            executor: Runs the attempt loop of each firing
            state: Store read by dependency checks
            timezone: Zone every cron trigger is evaluated in
            overlap: Same-job overlap policy ("skip" or "parallel")
            clock: Returns the current aware datetime
        """
        if overlap not in VALID_OVERLAPS:
            raise ValueError(f"overlap must be one of {sorted(VALID_OVERLAPS)}, got {overlap!r}")

        self.executor = executor
        self.state = state
        self.timezone = timezone
        self.overlap = overlap
        self.clock = clock

        self._bindings: dict[str, ScheduledBinding] = {}
        self._lock = threading.RLock()

        # Firings currently executing, per job name
        self._active: dict[str, int] = {}
        self._in_flight: set[threading.Thread] = set()
        self._idle = threading.Condition()

        self._last_results: dict[str, JobResult] = {}
        self._last_outcomes: dict[str, FiringOutcome] = {}

    # =========================================================================
    # Registration
    # =========================================================================

    def validate(self, definition: JobDefinition) -> None:
        """
        Check that ``definition`` could be registered, without binding it.

        Raises:
            InvalidScheduleError: If the cron expression is not valid
            InvalidJobDefinitionError: If the definition is disabled
        """
        if not definition.enabled:
            raise InvalidJobDefinitionError(definition.name, "job is disabled")

        if not is_valid_cron(definition.schedule):
            raise InvalidScheduleError(definition.name, definition.schedule)

    def register(self, definition: JobDefinition) -> ScheduledBinding:
        """
        Bind ``definition`` to a cron trigger and start it immediately.

        Raises:
            InvalidScheduleError: If the cron expression is not valid
            InvalidJobDefinitionError: If the definition is disabled
        """
        with self._lock:
            if definition.name in self._bindings:
                logger.warning(f"Job '{definition.name}' already exists, removing old job")
                self.remove(definition.name)

            self.validate(definition)

            trigger = CronTrigger(
                name=definition.name,
                expression=definition.schedule,
                timezone=self.timezone,
                callback=lambda fire_at, d=definition: self._on_trigger(d, fire_at),
                clock=self.clock,
            )
            binding = ScheduledBinding(definition=definition, trigger=trigger)
            trigger.start()
            self._bindings[definition.name] = binding

        logger.info(
            f"Job '{definition.name}' registered and started "
            f"(schedule='{definition.schedule}', timezone={self.timezone.key}, "
            f"next_run={_format_time(trigger.next_fire_at)})"
        )
        return binding

    def remove(self, name: str) -> bool:
        """Stop and discard a binding. Returns whether one existed."""
        with self._lock:
            binding = self._bindings.pop(name, None)

        if binding is None:
            return False

        binding.trigger.stop()
        logger.info(f"Removed job: {name}")
        return True

    def clear(self) -> None:
        """Stop and discard every binding."""
        for name in self.names():
            self.remove(name)

    # =========================================================================
    # Bulk Start / Stop
    # =========================================================================

    def start_all(self) -> int:
        """
        Arm every binding. A binding that fails to arm is logged and skipped.

        Returns:
            Number of bindings armed
        """
        started = 0
        bindings = self.bindings()

        for binding in bindings:
            try:
                binding.trigger.start()
                started += 1
                logger.info(f"Started job: {binding.name}")
            except Exception as e:
                logger.error(f"Failed to start job: {binding.name}: {e}")

        logger.info(f"Job scheduler started: {started}/{len(bindings)} jobs running")
        return started

    def stop_all(self) -> None:
        """Disarm every binding. In-flight firings are left to finish."""
        for binding in self.bindings():
            try:
                binding.trigger.stop()
                logger.info(f"Stopped job: {binding.name}")
            except Exception as e:
                logger.error(f"Failed to stop job: {binding.name}: {e}")

    # =========================================================================
    # Queries
    # =========================================================================

    def names(self) -> list[str]:
        with self._lock:
            return list(self._bindings.keys())

    def bindings(self) -> list[ScheduledBinding]:
        with self._lock:
            return list(self._bindings.values())

    def get(self, name: str) -> Optional[ScheduledBinding]:
        with self._lock:
            return self._bindings.get(name)

    def next_fire_time(self, name: str) -> Optional[datetime]:
        binding = self.get(name)
        return binding.trigger.next_fire_at if binding is not None else None

    def is_armed(self, name: str) -> bool:
        binding = self.get(name)
        return binding is not None and binding.armed

    def last_result(self, name: str) -> Optional[JobResult]:
        return self._last_results.get(name)

    def last_outcome(self, name: str) -> Optional[FiringOutcome]:
        return self._last_outcomes.get(name)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)

    # =========================================================================
    # Firing
    # =========================================================================

    def fire(self, definition: JobDefinition, fired_at: Optional[datetime] = None) -> FiringOutcome:
        """
        Run one firing of ``definition`` in the calling thread.

        Nothing raised while executing escapes this method.
        """
        fired_at = fired_at or self.clock()
        name = definition.name

        with self._lock:
            if self.overlap == OVERLAP_SKIP and self._active.get(name, 0) > 0:
                logger.warning(f"Skipping job '{name}': previous firing still in progress")
                self._last_outcomes[name] = FiringOutcome.OVERLAP_SKIPPED
                return FiringOutcome.OVERLAP_SKIPPED
            self._active[name] = self._active.get(name, 0) + 1

        try:
            if not should_run(definition.depends_on, self.state, fired_at):
                dependency = definition.depends_on
                logger.info(
                    f"Skipping job '{name}': dependency on '{dependency.job}' "
                    f"({dependency.condition.value}, {dependency.window_minutes}m) not satisfied"
                )
                outcome = FiringOutcome.SKIPPED
            else:
                self._last_results[name] = self.executor.execute(definition)
                outcome = FiringOutcome.EXECUTED

        except Exception as e:
            logger.error(f"Unexpected error while firing job '{name}': {e}", exc_info=True)
            outcome = FiringOutcome.ERROR

        finally:
            with self._lock:
                self._active[name] -= 1
                if self._active[name] <= 0:
                    del self._active[name]

        self._last_outcomes[name] = outcome
        return outcome

    def run_now(self, name: str) -> threading.Thread:
        """
        Fire a registered job immediately on a background thread.

        Raises:
            JobNotFoundError: If no binding exists for ``name``
        """
        binding = self.get(name)
        if binding is None:
            raise JobNotFoundError(name)
        logger.info(f"Manual run requested for job '{name}'")
        return self._spawn(binding.definition, self.clock())

    @property
    def in_flight_count(self) -> int:
        with self._idle:
            return len(self._in_flight)

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for in-flight firings to finish.

        Returns:
            True if none remain, False if ``timeout`` was reached
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout=timeout)

    def _on_trigger(self, definition: JobDefinition, fire_at: datetime) -> None:
        self._spawn(definition, fire_at)

    def _spawn(self, definition: JobDefinition, fired_at: datetime) -> threading.Thread:
        thread = threading.Thread(
            target=self._run_firing,
            args=(definition, fired_at),
            name=f"firing-{definition.name}",
            daemon=True,
        )
        with self._idle:
            self._in_flight.add(thread)
        thread.start()
        return thread

    def _run_firing(self, definition: JobDefinition, fired_at: datetime) -> None:
        try:
            self.fire(definition, fired_at)
        finally:
            with self._idle:
                self._in_flight.discard(threading.current_thread())
                self._idle.notify_all()


def _format_time(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else "Unknown"
