"""
Retry Executor for Job Scheduler.

Runs the attempt loop for one firing of a job:
- Records last_run_at before the first attempt, unconditionally
- Fetches a fresh bearer token for every attempt
- Retries transport failures with exponential backoff
- Records exactly one of last_success_at / last_failure_at at the end

Backoff between attempts:
    delay_ms = min(1000 * 2 ** (attempt - 1), 30000)
    1s → 2s → 4s → 8s → 16s → 30s → 30s ...
"""

import logging
import time
from typing import Callable, Protocol

from .dispatcher import HttpDispatcher
from .entities import JobDefinition, JobResult, utc_now
from .errors import DispatchError
from .runtime_state import RuntimeStateStore


logger = logging.getLogger(__name__)


BASE_DELAY_MS = 1000
MAX_DELAY_MS = 30000


class TokenProviderProtocol(Protocol):
    """Supplies the bearer token current at call time."""

    def get_current_token(self) -> str:
        ...


def calculate_backoff_ms(attempt: int) -> int:
    """Delay after failed ``attempt`` (1-based) before the next one."""
    return min(BASE_DELAY_MS * (2 ** (attempt - 1)), MAX_DELAY_MS)


class RetryExecutor:
    """
    Wraps HttpDispatcher with bounded retries.

    Any response received counts as success regardless of status code; only
    an exchange that did not complete is retried.
    """

    def __init__(
        self,
        dispatcher: HttpDispatcher,
        state: RuntimeStateStore,
        token_provider: TokenProviderProtocol,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable = utc_now,
    ):
        """
        Initialize RetryExecutor.

        Args:
            dispatcher: Sends a single request
            state: Store receiving run/success/failure timestamps
            token_provider: Queried once per attempt
            sleep: Blocking sleep in seconds (injected in tests)
            clock: Returns the current aware datetime
        """
        self.dispatcher = dispatcher
        self.state = state
        self.token_provider = token_provider
        self.sleep = sleep
        self.clock = clock

    def execute(self, definition: JobDefinition) -> JobResult:
        """
        Run the attempt sequence for one firing.

        Returns:
            Terminal JobResult; never raises for request failures
        """
        max_retries = definition.effective_max_retries
        started = time.monotonic()
        last_error = None

        self.state.mark_run(definition.name, self.clock())
        logger.info(f"Starting job: {definition.name}")

        for attempt in range(1, max_retries + 1):
            try:
                token = self.token_provider.get_current_token()
                response = self.dispatcher.dispatch(definition, token, attempt)

                finished_at = self.clock()
                execution_time_ms = int((time.monotonic() - started) * 1000)
                self.state.mark_success(definition.name, finished_at)

                logger.info(
                    f"Job '{definition.name}' completed successfully "
                    f"(attempt={attempt}, status={response.status_code}, "
                    f"execution_time={execution_time_ms}ms)"
                )

                return JobResult(
                    success=True,
                    job_name=definition.name,
                    timestamp=finished_at,
                    execution_time_ms=execution_time_ms,
                    attempts=attempt,
                    status_code=response.status_code,
                    response=_response_body(response),
                )

            except DispatchError as e:
                last_error = str(e)
                logger.warning(
                    f"Job '{definition.name}' attempt {attempt}/{max_retries} failed: {last_error}"
                )

            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.error(
                    f"Job '{definition.name}' attempt {attempt}/{max_retries} "
                    f"unexpected error: {last_error}"
                )

            if attempt < max_retries:
                delay_ms = calculate_backoff_ms(attempt)
                logger.debug(f"Retrying job '{definition.name}' in {delay_ms}ms")
                self.sleep(delay_ms / 1000.0)

        finished_at = self.clock()
        execution_time_ms = int((time.monotonic() - started) * 1000)
        self.state.mark_failure(definition.name, finished_at)

        logger.error(
            f"Job '{definition.name}' failed after {max_retries} attempts: {last_error} "
            f"(execution_time={execution_time_ms}ms)"
        )

        return JobResult(
            success=False,
            job_name=definition.name,
            timestamp=finished_at,
            execution_time_ms=execution_time_ms,
            attempts=max_retries,
            error=last_error,
        )


def _response_body(response):
    try:
        return response.json()
    except ValueError:
        return response.text
