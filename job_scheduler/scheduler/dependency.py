"""
Dependency Evaluator.

Answers "should this job run now?" from another job's recorded history.
No side effects; the caller supplies the state store and, in tests, the
current time.
"""

from datetime import datetime, timedelta
from typing import Optional

from .entities import DependencyCondition, DependencyPolicy, utc_now
from .runtime_state import RuntimeStateStore


def _within(value: Optional[datetime], window_start: datetime) -> bool:
    return value is not None and value >= window_start


def should_run(
    dependency: Optional[DependencyPolicy],
    state: RuntimeStateStore,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a job gated by ``dependency`` may run.

    Args:
        dependency: The job's policy, or None for an ungated job
        state: Store holding the other job's history
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        True if the job should run, False if this firing must be skipped
    """
    if dependency is None:
        return True

    now = now or utc_now()
    window_start = now - timedelta(minutes=dependency.window_minutes)

    other = state.get(dependency.job)
    ran_in_window = other is not None and _within(other.last_run_at, window_start)
    succeeded_in_window = other is not None and _within(other.last_success_at, window_start)

    if dependency.condition == DependencyCondition.NOT_RAN:
        return not ran_in_window

    if dependency.condition == DependencyCondition.FAILED:
        return ran_in_window and not succeeded_in_window

    # NOT_RAN_OR_FAILED. A stale success with no run in the window still
    # counts as "not ran", so this is not simply `not succeeded_in_window`.
    return (not ran_in_window) or (ran_in_window and not succeeded_in_window)
