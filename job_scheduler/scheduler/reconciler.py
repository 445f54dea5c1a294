"""
Reconciler for Job Scheduler.

Applies a full replacement set of job definitions to the registry:
stop all → clear → register each enabled definition.

Used at startup and on every change of the external job source. A bad
definition fails alone; the rest of the batch is still registered.
In-flight firings are not cancelled; each captured its definition by value.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

from .entities import JobDefinition, utc_now
from .errors import SchedulerError
from .registry import JobRegistry


logger = logging.getLogger(__name__)


@dataclass
class RegistrationFailure:
    """One definition that could not be registered."""

    name: str
    error: str


@dataclass
class ReconcileResult:
    """Summary of one replace_all call."""

    registered: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failures: list = field(default_factory=list)
    reconciled_at: Optional[datetime] = None

    @property
    def success_count(self) -> int:
        return len(self.registered)

    @property
    def error_count(self) -> int:
        return len(self.failures)


class Reconciler:
    """
    Replaces the registry's contents atomically with respect to other
    replace_all calls.
    """

    def __init__(self, registry: JobRegistry, clock: Callable = utc_now):
        self.registry = registry
        self.clock = clock
        self.last_reconciled_at: Optional[datetime] = None
        self._lock = threading.Lock()

    def replace_all(self, definitions: Iterable[Union[JobDefinition, dict]]) -> ReconcileResult:
        """
        Replace every registered job with ``definitions``.

        Mappings are accepted and parsed with JobDefinition.from_dict, so a
        missing required field surfaces as a per-job failure.

        Returns:
            ReconcileResult; registration errors are reported, never raised
        """
        definitions = list(definitions)
        result = ReconcileResult()

        with self._lock:
            logger.info(f"Updating scheduler with {len(definitions)} jobs from configuration")

            self.registry.stop_all()
            self.registry.clear()

            for raw in definitions:
                name = _name_of(raw)
                try:
                    definition = raw if isinstance(raw, JobDefinition) else JobDefinition.from_dict(raw)
                    if not definition.enabled:
                        result.skipped.append(definition.name)
                        logger.info(f"Job '{definition.name}' is disabled, not registering")
                        continue
                    self.registry.register(definition)

                except SchedulerError as e:
                    result.failures.append(RegistrationFailure(name=name, error=str(e)))
                    logger.error(f"Failed to register job '{name}': {e}")

            result.registered = self.registry.names()
            result.reconciled_at = self.clock()
            self.last_reconciled_at = result.reconciled_at

        logger.info(
            f"Scheduler updated: {result.success_count} jobs registered successfully, "
            f"{result.error_count} failed, {len(result.skipped)} disabled"
        )
        logger.info(
            f"Environment: timezone={self.registry.timezone.key}, "
            f"current_time={result.reconciled_at.isoformat()}, "
            f"current_time_local={result.reconciled_at.astimezone(self.registry.timezone).isoformat()}"
        )
        return result

    def dry_run(self, definitions: Iterable[Union[JobDefinition, dict]]) -> ReconcileResult:
        """
        Report what replace_all would register, leaving the registry untouched.

        No trigger is armed, so nothing can fire. As in replace_all, a later
        enabled definition with the same name replaces an earlier one, even
        when its schedule is invalid.

        Returns:
            ReconcileResult with ``registered`` naming the jobs that would be bound
        """
        result = ReconcileResult()
        accepted: dict[str, JobDefinition] = {}

        for raw in definitions:
            name = _name_of(raw)
            try:
                definition = raw if isinstance(raw, JobDefinition) else JobDefinition.from_dict(raw)
                if not definition.enabled:
                    result.skipped.append(definition.name)
                    continue
                accepted.pop(definition.name, None)
                self.registry.validate(definition)
                accepted[definition.name] = definition

            except SchedulerError as e:
                result.failures.append(RegistrationFailure(name=name, error=str(e)))

        result.registered = list(accepted)
        result.reconciled_at = self.clock()
        return result


def _name_of(raw) -> str:
    if isinstance(raw, JobDefinition):
        return raw.name
    if isinstance(raw, dict) and isinstance(raw.get("name"), str):
        return raw["name"]
    return "<unknown>"
