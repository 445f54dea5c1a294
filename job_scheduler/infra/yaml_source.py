"""
YAML job source.

Loads job definitions from a YAML file and pushes the full set to a
callback whenever the file changes. File format:

    global:
      defaultTimeout: 10000
      defaultRetries: 3
      defaultHeaders:
        Content-Type: application/json
    jobs:
      - name: health-check
        schedule: "0 * * * * *"
        url: https://example.com/health
        method: GET
        dependsOn:
          job: other-job
          windowMinutes: 60
          condition: not_ran
"""

import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import yaml
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from job_scheduler.scheduler.entities import JobDefinition, utc_now
from job_scheduler.scheduler.errors import ConfigSourceError, SchedulerError


logger = logging.getLogger(__name__)


SAMPLE_JOBS_YAML = """\
# Job Scheduler Configuration
# This file defines jobs that will be executed by the scheduler

global:
  defaultTimeout: 10000  # 10 seconds
  defaultRetries: 3
  defaultHeaders:
    Content-Type: application/json

jobs:
  # Example job that runs every 5 seconds
  - name: test-api-call
    schedule: "*/5 * * * * *"
    url: "https://httpbin.org/bearer"
    method: GET
    enabled: true
    description: "Test API call to httpbin.org"

  # Runs every minute, only if test-api-call has not succeeded in the last hour
  - name: health-check
    schedule: "0 * * * * *"
    url: "https://httpbin.org/status/200"
    method: GET
    timeout: 5000
    retries: 2
    enabled: true
    dependsOn:
      job: test-api-call
      windowMinutes: 60
      condition: not_ran_or_failed
    description: "Health check endpoint"

  # Weekly report for Monday..Friday of the current week
  - name: weekly-report
    schedule: "0 0 17 * * 5"
    url: "https://httpbin.org/post"
    method: POST
    headers:
      X-Custom-Header: "weekly-report"
    data:
      weekRange: current
      requestedAt: "${NOW}"
    timeout: 15000
    retries: 3
    enabled: false  # Disabled by default
    description: "Weekly report"

# Cron Expression Format:
# ┌───────────── second (0-59, optional)
# │ ┌───────────── minute (0-59)
# │ │ ┌───────────── hour (0-23)
# │ │ │ ┌───────────── day of month (1-31)
# │ │ │ │ ┌───────────── month (1-12)
# │ │ │ │ │ ┌───────────── day of week (0-6, 0 is Sunday)
# │ │ │ │ │ │
# * * * * * *
"""


class JobsFileEventHandler(FileSystemEventHandler):
    """
    Forwards events for one file to its source.

    The observer watches the file's parent directory so that creating and
    deleting the file are seen as well; events for other entries are ignored.
    """

    RELOAD_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}

    def __init__(self, source: "YamlJobSource"):
        super().__init__()
        self.source = source
        self.target = source.path.resolve()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in self.RELOAD_EVENTS:
            return

        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(p and Path(os.fsdecode(p)).resolve() == self.target for p in paths):
            logger.debug(f"Jobs file event: {event.event_type} {event.src_path}")
            self.source.schedule_check()


class YamlJobSource:
    """
    Job definitions backed by a YAML file, reloaded on file system events.

    Disabled jobs are dropped at load time; entries that cannot be parsed
    are logged and skipped without affecting the rest of the file.
    """

    def __init__(
        self,
        path: str | Path = "jobs.yaml",
        default_timeout_ms: Optional[int] = None,
        default_retries: Optional[int] = None,
        debounce_seconds: float = 0.5,
    ):
        """
        Initialize YamlJobSource.

        Args:
            path: Job file location
            default_timeout_ms: Used when neither job nor ``global`` sets one
            default_retries: Used when neither job nor ``global`` sets one
            debounce_seconds: Quiet period after the last file event before reloading
        """
        self.path = Path(path)
        self.default_timeout_ms = default_timeout_ms
        self.default_retries = default_retries
        self.debounce_seconds = debounce_seconds

        self.last_update: Optional[datetime] = None
        self.invalid_entries: list[str] = []

        self._on_update: Optional[Callable[[list[JobDefinition]], None]] = None
        self._observer: Optional[Observer] = None
        self._pending: Optional[threading.Timer] = None
        self._pending_lock = threading.Lock()
        self._signature: Optional[tuple] = None

    # =========================================================================
    # Loading
    # =========================================================================

    def parse(self, content: str) -> list[JobDefinition]:
        """
        Parse YAML text into enabled job definitions.

        Raises:
            ConfigSourceError: If the text is not valid YAML or not a mapping
        """
        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigSourceError(str(self.path), f"invalid YAML: {e}") from e

        if document is None:
            return []
        if not isinstance(document, dict):
            raise ConfigSourceError(str(self.path), "top level must be a mapping")

        jobs = document.get("jobs") or []
        if not isinstance(jobs, list):
            raise ConfigSourceError(str(self.path), "'jobs' must be a list")

        global_cfg = document.get("global") or {}
        if not isinstance(global_cfg, dict):
            raise ConfigSourceError(str(self.path), "'global' must be a mapping")

        default_timeout = self._global_int(global_cfg, "defaultTimeout", self.default_timeout_ms)
        default_retries = self._global_int(global_cfg, "defaultRetries", self.default_retries)

        default_headers = global_cfg.get("defaultHeaders")
        if default_headers is None:
            default_headers = {}
        elif not isinstance(default_headers, dict):
            raise ConfigSourceError(str(self.path), "'global.defaultHeaders' must be a mapping")

        definitions = []
        self.invalid_entries = []

        for index, raw in enumerate(jobs):
            if isinstance(raw, dict) and raw.get("enabled") is False:
                continue
            try:
                definitions.append(
                    JobDefinition.from_dict(
                        raw,
                        default_timeout_ms=default_timeout,
                        default_retries=default_retries,
                        default_headers=default_headers,
                    )
                )
            except SchedulerError as e:
                self.invalid_entries.append(str(e))
                logger.error(f"Skipping jobs[{index}] in {self.path}: {e}")

        return definitions

    def _global_int(self, global_cfg: dict, key: str, fallback: Optional[int]) -> Optional[int]:
        value = global_cfg.get(key)
        if value is None:
            return fallback
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigSourceError(
                str(self.path), f"'global.{key}' must be a positive integer, got {value!r}"
            )
        return value

    def load_strict(self) -> list[JobDefinition]:
        """
        Load enabled job definitions, raising on file errors.

        A missing file yields an empty list.

        Raises:
            ConfigSourceError: If the file cannot be read or parsed
        """
        if not self.path.exists():
            logger.info(f"Jobs file not found: {self.path}")
            return []

        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigSourceError(str(self.path), str(e)) from e

        definitions = self.parse(content)
        self.last_update = utc_now()
        logger.info(f"Loaded {len(definitions)} jobs from {self.path}")
        return definitions

    def load(self) -> list[JobDefinition]:
        """Load enabled job definitions; file errors are logged and yield []."""
        try:
            return self.load_strict()
        except ConfigSourceError as e:
            logger.error(f"Error loading jobs file: {e}")
            return []

    # =========================================================================
    # Watching
    # =========================================================================

    def initialize(self, on_update: Callable[[list[JobDefinition]], None]) -> list[JobDefinition]:
        """
        Push the current jobs to ``on_update`` and start watching for changes.

        Returns:
            The definitions pushed initially
        """
        self._on_update = on_update
        self._signature = self._file_signature()
        definitions = self.load()
        on_update(definitions)
        self.start_watching()
        return definitions

    def start_watching(self) -> None:
        """Start a watchdog observer on the jobs file's directory."""
        if self._observer is not None and self._observer.is_alive():
            return

        watch_dir = self.path.parent
        try:
            watch_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot watch {self.path}: {e}")
            return

        observer = Observer()
        observer.schedule(JobsFileEventHandler(self), str(watch_dir), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info(f"Watching for changes in: {self.path}")

    def stop_watching(self, timeout: float = 5.0) -> None:
        with self._pending_lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
            self._observer = None

    @property
    def watching(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def schedule_check(self) -> None:
        """
        Run ``check_for_changes`` once events for the file stop arriving.

        Editors write a file in several steps; each event restarts the
        debounce timer so only the final state is loaded.
        """
        with self._pending_lock:
            if self._pending is not None:
                self._pending.cancel()
            timer = threading.Timer(self.debounce_seconds, self.check_for_changes)
            timer.name = "jobs-file-reload"
            timer.daemon = True
            self._pending = timer
            timer.start()

    def check_for_changes(self) -> bool:
        """
        Reload and push jobs if the file was added, changed or removed.

        Returns:
            True if a change was detected
        """
        signature = self._file_signature()
        if signature == self._signature:
            return False

        if signature is None:
            logger.info(f"Jobs file removed: {self.path}")
        elif self._signature is None:
            logger.info(f"Jobs file added: {self.path}")
        else:
            logger.info(f"Jobs file changed: {self.path}")

        self._signature = signature
        self._handle_change()
        return True

    def _handle_change(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self.load())
            self.last_update = utc_now()
        except Exception as e:
            logger.error(f"Error handling jobs file change: {e}", exc_info=True)

    def _file_signature(self) -> Optional[tuple]:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    # =========================================================================
    # Sample File
    # =========================================================================

    def create_sample_file(self) -> bool:
        """
        Write an example jobs file if none exists.

        Returns:
            True if a file was created
        """
        if self.path.exists():
            logger.info(f"Jobs file already exists: {self.path}")
            return False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(SAMPLE_JOBS_YAML, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error creating sample jobs file: {e}")
            return False

        logger.info(f"Created sample jobs file: {self.path}")
        return True
