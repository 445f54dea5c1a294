"""
Tests for the YAML job source.
"""

import os
import time
from unittest.mock import Mock

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from job_scheduler.infra.yaml_source import SAMPLE_JOBS_YAML, JobsFileEventHandler, YamlJobSource
from job_scheduler.scheduler import ConfigSourceError, DependencyCondition, HttpMethod


BASIC_YAML = """
global:
  defaultTimeout: 10000
  defaultRetries: 2
  defaultHeaders:
    X-Team: ops
jobs:
  - name: ping
    schedule: "*/5 * * * * *"
    url: https://example.com/ping
  - name: report
    schedule: "0 0 17 * * 5"
    url: https://example.com/report
    method: post
    timeout: 15000
    retries: 5
    headers:
      X-Team: reports
    data:
      weekRange: current
    dependsOn:
      job: ping
      windowMinutes: 60
      condition: not_ran
  - name: paused
    schedule: "* * * * *"
    url: https://example.com/paused
    enabled: false
"""


@pytest.fixture
def jobs_file(tmp_path):
    path = tmp_path / "jobs.yaml"
    path.write_text(BASIC_YAML)
    return path


def bump(path, content):
    """Rewrite ``path`` with a guaranteed-new mtime."""
    stat = path.stat() if path.exists() else None
    path.write_text(content)
    if stat is not None:
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))


class TestParse:
    def test_enabled_jobs_only(self, jobs_file):
        definitions = YamlJobSource(jobs_file).load()

        assert [d.name for d in definitions] == ["ping", "report"]

    def test_global_defaults_applied(self, jobs_file):
        ping = YamlJobSource(jobs_file).load()[0]

        assert ping.timeout_ms == 10000
        assert ping.max_retries == 2
        assert ping.method == HttpMethod.GET
        assert ping.headers == {"X-Team": "ops"}

    def test_job_values_override_globals(self, jobs_file):
        report = YamlJobSource(jobs_file).load()[1]

        assert report.method == HttpMethod.POST
        assert report.timeout_ms == 15000
        assert report.max_retries == 5
        assert report.headers == {"X-Team": "reports"}
        assert report.data == {"weekRange": "current"}
        assert report.depends_on.job == "ping"
        assert report.depends_on.window_minutes == 60
        assert report.depends_on.condition == DependencyCondition.NOT_RAN

    def test_source_defaults_without_global(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text("jobs:\n  - name: a\n    schedule: '* * * * *'\n    url: https://e.com\n")

        definition = YamlJobSource(path, default_timeout_ms=7000, default_retries=4).load()[0]

        assert definition.timeout_ms == 7000
        assert definition.max_retries == 4

    def test_invalid_entry_skipped(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text(
            "jobs:\n"
            "  - name: no-url\n"
            "    schedule: '* * * * *'\n"
            "  - name: ok\n"
            "    schedule: '* * * * *'\n"
            "    url: https://e.com\n"
            "  - name: bad-method\n"
            "    schedule: '* * * * *'\n"
            "    url: https://e.com\n"
            "    method: TRACE\n"
        )
        source = YamlJobSource(path)

        definitions = source.load()

        assert [d.name for d in definitions] == ["ok"]
        assert len(source.invalid_entries) == 2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text("")

        assert YamlJobSource(path).load() == []

    @pytest.mark.parametrize("content", ["jobs: [unclosed", "- just\n- a list\n", "jobs: not-a-list\n"])
    def test_malformed_file(self, tmp_path, content):
        path = tmp_path / "jobs.yaml"
        path.write_text(content)
        source = YamlJobSource(path)

        with pytest.raises(ConfigSourceError):
            source.load_strict()
        assert source.load() == []

    def test_missing_file(self, tmp_path):
        source = YamlJobSource(tmp_path / "absent.yaml")

        assert source.load_strict() == []

    def test_sample_parses(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text(SAMPLE_JOBS_YAML)
        source = YamlJobSource(path)

        definitions = source.load_strict()

        assert [d.name for d in definitions] == ["test-api-call", "health-check"]
        assert source.invalid_entries == []

    @pytest.mark.parametrize(
        "global_block",
        [
            "  defaultTimeout: '10000'\n",
            "  defaultTimeout: 0\n",
            "  defaultRetries: -1\n",
            "  defaultRetries: true\n",
            "  defaultHeaders:\n    - X-Team\n",
            "  defaultHeaders: ops\n",
        ],
    )
    def test_malformed_globals_rejected_at_load(self, tmp_path, global_block):
        """Bad globals fail the load instead of surfacing when a job fires."""
        path = tmp_path / "jobs.yaml"
        path.write_text(
            "global:\n" + global_block +
            "jobs:\n  - name: a\n    schedule: '* * * * *'\n    url: https://e.com\n"
        )
        source = YamlJobSource(path, default_timeout_ms=7000, default_retries=4)

        with pytest.raises(ConfigSourceError, match="global"):
            source.load_strict()
        assert source.load() == []

    def test_null_globals_fall_back_to_source_defaults(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text(
            "global:\n  defaultTimeout:\n  defaultHeaders:\n"
            "jobs:\n  - name: a\n    schedule: '* * * * *'\n    url: https://e.com\n"
        )

        definition = YamlJobSource(path, default_timeout_ms=7000).load_strict()[0]

        assert definition.timeout_ms == 7000
        assert definition.headers == {}


class TestSampleFile:
    def test_created_when_missing(self, tmp_path):
        path = tmp_path / "config" / "jobs.yaml"

        assert YamlJobSource(path).create_sample_file() is True
        assert path.read_text() == SAMPLE_JOBS_YAML

    def test_existing_file_untouched(self, jobs_file):
        assert YamlJobSource(jobs_file).create_sample_file() is False
        assert jobs_file.read_text() == BASIC_YAML


class TestChangeDetection:
    def test_initialize_pushes_current_jobs(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=60)
        on_update = Mock()
        try:
            definitions = source.initialize(on_update)
        finally:
            source.stop_watching()

        on_update.assert_called_once_with(definitions)
        assert source.last_update is not None

    def test_no_change_no_push(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=60)
        on_update = Mock()
        source.initialize(on_update)
        source.stop_watching()

        assert source.check_for_changes() is False
        assert on_update.call_count == 1

    def test_change_pushes_new_set(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=60)
        on_update = Mock()
        source.initialize(on_update)
        source.stop_watching()

        bump(jobs_file, "jobs:\n  - name: only\n    schedule: '* * * * *'\n    url: https://e.com\n")

        assert source.check_for_changes() is True
        pushed = on_update.call_args[0][0]
        assert [d.name for d in pushed] == ["only"]

    def test_removed_file_pushes_empty_set(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=60)
        on_update = Mock()
        source.initialize(on_update)
        source.stop_watching()

        jobs_file.unlink()

        assert source.check_for_changes() is True
        on_update.assert_called_with([])

    def test_added_file_pushes_jobs(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        source = YamlJobSource(path, debounce_seconds=60)
        on_update = Mock()
        source.initialize(on_update)
        source.stop_watching()
        on_update.assert_called_once_with([])

        path.write_text(BASIC_YAML)

        assert source.check_for_changes() is True
        assert len(on_update.call_args[0][0]) == 2

    def test_callback_error_is_contained(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=60)
        source.initialize(Mock())
        source.stop_watching()
        source._on_update = Mock(side_effect=RuntimeError("reconcile failed"))

        bump(jobs_file, BASIC_YAML + "\n")

        assert source.check_for_changes() is True

    def test_watcher_stops(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=60)
        source.initialize(Mock())
        assert source.watching is True

        source.stop_watching()

        assert source.watching is False
        assert source._observer is None


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class TestFileEvents:
    @pytest.fixture
    def source(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=60)
        source.schedule_check = Mock()
        return source

    @pytest.mark.parametrize("event_class", [FileModifiedEvent, FileCreatedEvent, FileDeletedEvent])
    def test_jobs_file_events_schedule_reload(self, source, jobs_file, event_class):
        JobsFileEventHandler(source).dispatch(event_class(str(jobs_file)))

        source.schedule_check.assert_called_once_with()

    def test_move_onto_jobs_file_schedules_reload(self, source, jobs_file):
        """Editors that save through a temp file and rename still trigger a reload."""
        temp = jobs_file.parent / ".jobs.yaml.swp"

        JobsFileEventHandler(source).dispatch(FileMovedEvent(str(temp), str(jobs_file)))

        source.schedule_check.assert_called_once_with()

    def test_other_files_ignored(self, source, jobs_file):
        handler = JobsFileEventHandler(source)

        handler.dispatch(FileModifiedEvent(str(jobs_file.parent / "other.yaml")))
        handler.dispatch(DirModifiedEvent(str(jobs_file.parent)))

        source.schedule_check.assert_not_called()

    def test_burst_of_events_reloads_once(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=0.2)
        on_update = Mock()
        source.initialize(on_update)
        source.stop_watching()
        bump(jobs_file, "jobs:\n  - name: only\n    schedule: '* * * * *'\n    url: https://e.com\n")

        for _ in range(5):
            source.schedule_check()

        assert wait_until(lambda: on_update.call_count == 2)
        time.sleep(0.3)
        assert on_update.call_count == 2
        assert [d.name for d in on_update.call_args[0][0]] == ["only"]

    def test_observer_reloads_on_write(self, jobs_file):
        source = YamlJobSource(jobs_file, debounce_seconds=0.1)
        on_update = Mock()
        source.initialize(on_update)
        try:
            bump(jobs_file, "jobs:\n  - name: only\n    schedule: '* * * * *'\n    url: https://e.com\n")

            assert wait_until(lambda: on_update.call_count >= 2)
        finally:
            source.stop_watching()

        assert [d.name for d in on_update.call_args[0][0]] == ["only"]

    def test_watching_missing_directory_creates_it(self, tmp_path):
        path = tmp_path / "config" / "jobs.yaml"
        source = YamlJobSource(path, debounce_seconds=60)
        try:
            source.initialize(Mock())

            assert path.parent.is_dir()
            assert source.watching is True
        finally:
            source.stop_watching()
