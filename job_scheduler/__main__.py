"""
Entry point: python -m job_scheduler

Loads jobs from the YAML job file, keeps them in sync with the file, and
serves the health/status API until SIGINT/SIGTERM.
"""

# Load environment variables BEFORE importing modules that depend on them
from dotenv import load_dotenv
load_dotenv()

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

import uvicorn

from job_scheduler import __version__
from job_scheduler.api.main import create_app
from job_scheduler.infra.logging_config import setup_logging
from job_scheduler.infra.settings import Settings
from job_scheduler.infra.token_provider import EnvTokenProvider
from job_scheduler.infra.yaml_source import YamlJobSource
from job_scheduler.scheduler.service import SchedulerService


logger = logging.getLogger("job_scheduler")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="job-scheduler",
        description="Cron-driven HTTP job scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  JWT_TOKEN        Bearer token sent with every request (required)
  JOBS_FILE        Job file path (default: jobs.yaml)
  TZ               Timezone for cron schedules (default: America/Chicago)
  LOG_LEVEL        Logging level (default: INFO)
  HEALTH_PORT      Health/status API port (default: 8081)
""",
    )
    parser.add_argument(
        "--jobs-file",
        default=None,
        help="Job file path (overrides JOBS_FILE)",
    )
    parser.add_argument(
        "--no-api",
        action="store_true",
        help="Run without the health/status API",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="API bind host (overrides HEALTH_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="API bind port (overrides HEALTH_PORT)",
    )
    parser.add_argument(
        "--no-sample",
        action="store_true",
        help="Do not create a sample job file when none exists",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Load the job file, check every job without scheduling it, print failures and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def run_validate(service: SchedulerService, source: YamlJobSource) -> int:
    """Check every job against the registry, report problems, and exit without arming."""
    definitions = source.load_strict()
    schedules = {d.name: d.schedule for d in definitions}
    result = service.reconciler.dry_run(definitions)

    for problem in source.invalid_entries:
        print(f"INVALID  {problem}")
    for failure in result.failures:
        print(f"FAILED   {failure.name}: {failure.error}")
    for name in result.registered:
        print(f"OK       {name} ({schedules[name]})")

    return 1 if result.failures or source.invalid_entries else 0


def run_headless(service: SchedulerService, source: YamlJobSource, shutdown_timeout: float) -> int:
    """Run the scheduler without the API until a shutdown signal arrives."""
    shutdown_requested = threading.Event()

    def signal_handler(signum, frame):
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info(f"Received {signal_name}, shutting down gracefully...")
        shutdown_requested.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    service.jobs_file = str(source.path)
    source.initialize(service.replace_all)
    service.start()
    logger.info(f"Scheduler status: {service.get_status().to_dict()}")

    try:
        shutdown_requested.wait()
    finally:
        source.stop_watching()
        service.stop(timeout=shutdown_timeout)

    return 0


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level, settings.log_dir)

    token_provider = EnvTokenProvider()
    if not token_provider.is_available():
        logger.error("JWT_TOKEN environment variable is required")
        return 1

    source = YamlJobSource(
        args.jobs_file or settings.jobs_file,
        default_timeout_ms=settings.default_timeout_ms,
        default_retries=settings.default_retries,
        debounce_seconds=settings.config_debounce_seconds,
    )
    service = SchedulerService.create(
        token_provider,
        timezone=settings.timezone,
        overlap=settings.overlap,
    )

    try:
        if args.validate:
            return run_validate(service, source)

        if not args.no_sample:
            source.create_sample_file()

        if args.no_api:
            return run_headless(service, source, settings.shutdown_timeout_seconds)

        app = create_app(service, source=source, shutdown_timeout=settings.shutdown_timeout_seconds)
        uvicorn.run(
            app,
            host=args.host or settings.health_host,
            port=args.port or settings.health_port,
            log_level=settings.log_level.lower(),
        )
        return 0

    except Exception as e:
        logger.error(f"Scheduler terminated: {e}", exc_info=True)
        return 1

    finally:
        service.close()
        logger.info("Scheduler stopped. Goodbye!")


if __name__ == "__main__":
    sys.exit(main())
