"""
HTTP Dispatcher for Job Scheduler.

Builds and sends one authenticated request for one attempt of a job.

What Dispatcher MUST NOT do:
- Retry (RetryExecutor owns the attempt loop)
- Touch the RuntimeStateStore
- Cache the bearer token (the caller passes the current one per attempt)
"""

import logging
import os
from typing import Callable, Mapping, Optional
from zoneinfo import ZoneInfo

import httpx

from job_scheduler import __version__

from .entities import JobDefinition, utc_now
from .errors import DispatchError
from .placeholders import resolve_placeholders, substitute_variables


logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": f"JobScheduler/{__version__}",
}


class HttpDispatcher:
    """
    Sends a job's HTTP request with the system-controlled Authorization.

    Any completed exchange is returned as-is, whatever the status code.
    Transport failures (timeout, connection refused, DNS) raise DispatchError.
    """

    def __init__(
        self,
        timezone: ZoneInfo,
        client: Optional[httpx.Client] = None,
        clock: Callable = utc_now,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize HttpDispatcher.

        Args:
            timezone: Zone used for date placeholders in request bodies
            client: Shared httpx client; a short-lived one is used per call if None
            clock: Returns the current aware datetime
            environ: Variables for ``${NAME}`` substitution (defaults to os.environ)
        """
        self.timezone = timezone
        self.client = client
        self.clock = clock
        self.environ = environ

    def build_headers(self, definition: JobDefinition, token: str, variables: Mapping[str, str]) -> dict:
        """Merge job headers over defaults and inject the bearer token."""
        headers = {**DEFAULT_HEADERS, **definition.headers}
        headers = {
            key: substitute_variables(str(value), variables)
            for key, value in headers.items()
            if key.lower() != "authorization"
        }
        headers["Authorization"] = f"Bearer {token}"
        return headers

    def build_request(self, definition: JobDefinition, token: str) -> dict:
        """
        Build keyword arguments for ``httpx.Client.request``.

        Returns:
            Dict with method, url, headers, timeout and, for POST/PUT/PATCH
            with data, a resolved json body
        """
        now = self.clock()
        environ = self.environ if self.environ is not None else os.environ
        variables = {**environ, "JWT_TOKEN": token, "NOW": now.isoformat()}

        request = {
            "method": definition.method.value,
            "url": definition.url,
            "headers": self.build_headers(definition, token, variables),
            "timeout": definition.effective_timeout_ms / 1000.0,
        }

        if definition.method.allows_body and definition.data is not None:
            request["json"] = resolve_placeholders(
                definition.data, now, self.timezone, variables
            )

        return request

    def dispatch(self, definition: JobDefinition, token: str, attempt: int = 1) -> httpx.Response:
        """
        Send one request for ``definition``.

        Raises:
            DispatchError: If the exchange did not complete
        """
        request = self.build_request(definition, token)

        logger.debug(
            f"Making {request['method']} request to {request['url']} "
            f"(job={definition.name}, attempt={attempt})"
        )

        try:
            if self.client is not None:
                return self.client.request(**request)
            with httpx.Client() as client:
                return client.request(**request)

        except httpx.TimeoutException as e:
            raise DispatchError(
                definition.name,
                f"Timeout after {definition.effective_timeout_ms}ms",
            ) from e

        except httpx.RequestError as e:
            raise DispatchError(definition.name, f"Request error: {e}") from e
