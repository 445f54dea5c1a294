"""
Bearer token providers.

The engine asks for the token at every dispatch; providers never hand out
a value cached for a job's lifetime.
"""

import os
from typing import Mapping, Optional

from job_scheduler.scheduler.errors import TokenUnavailableError


class EnvTokenProvider:
    """Reads the token from an environment variable on every call."""

    def __init__(self, variable: str = "JWT_TOKEN", environ: Optional[Mapping[str, str]] = None):
        self.variable = variable
        self.environ = environ

    def get_current_token(self) -> str:
        environ = os.environ if self.environ is None else self.environ
        token = environ.get(self.variable, "").strip()
        if not token:
            raise TokenUnavailableError(f"{self.variable} environment variable is required")
        return token

    def is_available(self) -> bool:
        try:
            self.get_current_token()
        except TokenUnavailableError:
            return False
        return True


class StaticTokenProvider:
    """Fixed token; ``set_token`` swaps it for rotation."""

    def __init__(self, token: str):
        self._token = token

    def set_token(self, token: str) -> None:
        self._token = token

    def get_current_token(self) -> str:
        if not self._token:
            raise TokenUnavailableError("No bearer token configured")
        return self._token
