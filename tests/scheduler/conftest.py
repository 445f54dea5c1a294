"""
Scheduler Test Fixtures.

Base fixtures:
  - Mocked clock at fixed time
  - Recording sleep (no real backoff waits)
  - Scripted dispatcher (no network)
  - Fresh state store, executor and registry per test
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import httpx
import pytest

from job_scheduler.infra.token_provider import StaticTokenProvider
from job_scheduler.scheduler import (
    DependencyCondition,
    DependencyPolicy,
    DispatchError,
    HttpMethod,
    JobDefinition,
    JobRegistry,
    Reconciler,
    RetryExecutor,
    RuntimeStateStore,
)


# Fixed time for deterministic tests
FIXED_DATETIME = datetime(2026, 1, 7, 15, 0, 0, tzinfo=timezone.utc)
DAILY = "0 0 * * *"


class MockClock:
    """
    Mock clock for deterministic time control.

    - Starts at fixed epoch
    - Advances only when explicitly ticked
    """

    def __init__(self, start_time: datetime = FIXED_DATETIME):
        self._current = start_time

    def __call__(self) -> datetime:
        return self._current

    def now(self) -> datetime:
        return self._current

    def tick(self, seconds: float = 1) -> None:
        """Advance time by specified seconds."""
        self._current += timedelta(seconds=seconds)

    def set(self, time: datetime) -> None:
        """Set time to specific value."""
        self._current = time


class RecordingSleep:
    """Records requested backoff delays instead of sleeping."""

    def __init__(self, clock: MockClock = None):
        self.delays = []
        self.clock = clock

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.tick(seconds)

    @property
    def total(self) -> float:
        return sum(self.delays)


class CountingTokenProvider(StaticTokenProvider):
    """Static token provider that counts lookups."""

    def __init__(self, token: str = "test-token"):
        super().__init__(token)
        self.calls = 0

    def get_current_token(self) -> str:
        self.calls += 1
        return super().get_current_token()


class MockDispatcher:
    """
    Scripted stand-in for HttpDispatcher.

    Each call consumes the next outcome: an int status code returns a
    response, an exception instance is raised. When the script runs out the
    last outcome repeats.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [200])
        self.calls = []
        self.started = threading.Event()
        self.release = None

    def block_until_released(self) -> None:
        """Make every dispatch wait until ``release`` is set."""
        self.release = threading.Event()

    def dispatch(self, definition: JobDefinition, token: str, attempt: int = 1) -> httpx.Response:
        self.calls.append((definition.name, token, attempt))
        self.started.set()
        if self.release is not None:
            self.release.wait(timeout=5)

        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"ok": outcome < 400})

    def calls_for(self, name: str) -> list:
        return [call for call in self.calls if call[0] == name]


def timeout_error(name: str = "job") -> DispatchError:
    return DispatchError(name, "Timeout after 30000ms")


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    """Create a mock clock at fixed time."""
    return MockClock()


@pytest.fixture
def recording_sleep(mock_clock: MockClock) -> RecordingSleep:
    return RecordingSleep(mock_clock)


@pytest.fixture
def state() -> RuntimeStateStore:
    return RuntimeStateStore()


@pytest.fixture
def token_provider() -> CountingTokenProvider:
    return CountingTokenProvider()


@pytest.fixture
def mock_dispatcher() -> MockDispatcher:
    return MockDispatcher()


@pytest.fixture
def executor(
    mock_dispatcher: MockDispatcher,
    state: RuntimeStateStore,
    token_provider: CountingTokenProvider,
    recording_sleep: RecordingSleep,
    mock_clock: MockClock,
) -> RetryExecutor:
    """Create a RetryExecutor with scripted dispatcher and no real sleeps."""
    return RetryExecutor(
        dispatcher=mock_dispatcher,
        state=state,
        token_provider=token_provider,
        sleep=recording_sleep,
        clock=mock_clock,
    )


@pytest.fixture
def registry(executor: RetryExecutor, state: RuntimeStateStore, mock_clock: MockClock):
    """Create a JobRegistry; every binding is stopped after the test."""
    reg = JobRegistry(
        executor=executor,
        state=state,
        timezone=ZoneInfo("America/Chicago"),
        clock=mock_clock,
    )
    yield reg
    reg.clear()


@pytest.fixture
def reconciler(registry: JobRegistry, mock_clock: MockClock) -> Reconciler:
    return Reconciler(registry, clock=mock_clock)


# =============================================================================
# Definition Factory Fixtures
# =============================================================================


@pytest.fixture
def make_job() -> Callable:
    """
    Factory fixture for job definitions.

    Returns a function that builds a JobDefinition with test defaults.
    """

    def _create(
        name: str = "job",
        schedule: str = DAILY,
        url: str = "https://api.example.com/run",
        method: HttpMethod = HttpMethod.GET,
        **kwargs,
    ) -> JobDefinition:
        return JobDefinition(name=name, schedule=schedule, url=url, method=method, **kwargs)

    return _create


@pytest.fixture
def make_dependency() -> Callable:
    def _create(
        job: str = "upstream",
        condition: DependencyCondition = DependencyCondition.NOT_RAN_OR_FAILED,
        window_minutes: int = 180,
    ) -> DependencyPolicy:
        return DependencyPolicy(job=job, window_minutes=window_minutes, condition=condition)

    return _create
