"""
Runtime State Store.

In-memory map from job name to JobRuntimeState, shared between the
RetryExecutor (writer, one entry per job) and the dependency check
(reader, any entry). Entries are created on first run and live for the
life of the process, across reconciliations.
"""

import threading
from datetime import datetime
from typing import Optional

from .entities import JobRuntimeState


class RuntimeStateStore:
    """
    Lock-guarded job state map.

    Readers always receive copies so a concurrent write cannot change a
    state object while it is being evaluated.
    """

    def __init__(self):
        self._states: dict[str, JobRuntimeState] = {}
        self._lock = threading.Lock()

    def get(self, job_name: str) -> Optional[JobRuntimeState]:
        """Get a copy of a job's state, or None if it never ran."""
        with self._lock:
            state = self._states.get(job_name)
            return state.copy() if state is not None else None

    def mark_run(self, job_name: str, at: datetime) -> None:
        """Record the start of an attempt sequence."""
        with self._lock:
            self._entry(job_name).last_run_at = at

    def mark_success(self, job_name: str, at: datetime) -> None:
        with self._lock:
            self._entry(job_name).last_success_at = at

    def mark_failure(self, job_name: str, at: datetime) -> None:
        with self._lock:
            self._entry(job_name).last_failure_at = at

    def snapshot(self) -> dict[str, JobRuntimeState]:
        """Copy of every entry, keyed by job name."""
        with self._lock:
            return {name: state.copy() for name, state in self._states.items()}

    def __contains__(self, job_name: str) -> bool:
        with self._lock:
            return job_name in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def _entry(self, job_name: str) -> JobRuntimeState:
        # Caller holds the lock
        state = self._states.get(job_name)
        if state is None:
            state = JobRuntimeState()
            self._states[job_name] = state
        return state
