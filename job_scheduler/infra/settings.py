"""
Process settings read from the environment.

Call ``load_dotenv()`` before ``Settings.from_env()`` so values from a
``.env`` file are visible.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from job_scheduler.scheduler.entities import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_MS
from job_scheduler.scheduler.registry import DEFAULT_TIMEZONE, OVERLAP_SKIP, VALID_OVERLAPS


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Scheduler process configuration."""

    timezone: str = DEFAULT_TIMEZONE
    jobs_file: str = "jobs.yaml"
    log_level: str = "INFO"
    log_dir: str = "logs"
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    default_retries: int = DEFAULT_MAX_RETRIES
    overlap: str = OVERLAP_SKIP
    health_host: str = "0.0.0.0"
    health_port: int = 8081
    shutdown_timeout_seconds: float = 30.0
    config_debounce_seconds: float = 0.5

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ValueError: If a numeric variable does not parse, the timezone is
                unknown, or the overlap policy is not recognised
        """
        env = os.environ if environ is None else environ

        timezone = env.get("TZ", "").strip() or DEFAULT_TIMEZONE
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {timezone!r}") from None

        overlap = env.get("JOB_OVERLAP", OVERLAP_SKIP).strip().lower() or OVERLAP_SKIP
        if overlap not in VALID_OVERLAPS:
            raise ValueError(f"JOB_OVERLAP must be one of {sorted(VALID_OVERLAPS)}, got {overlap!r}")

        return cls(
            timezone=timezone,
            jobs_file=env.get("JOBS_FILE", "jobs.yaml"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_dir=env.get("LOG_DIR", "logs"),
            default_timeout_ms=_get_int(env, "DEFAULT_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            default_retries=_get_int(env, "DEFAULT_RETRIES", DEFAULT_MAX_RETRIES),
            overlap=overlap,
            health_host=env.get("HEALTH_HOST", "0.0.0.0"),
            health_port=_get_int(env, "HEALTH_PORT", 8081),
            shutdown_timeout_seconds=_get_float(env, "SHUTDOWN_TIMEOUT_SECONDS", 30.0),
            config_debounce_seconds=_get_float(env, "CONFIG_DEBOUNCE_SECONDS", 0.5),
        )
