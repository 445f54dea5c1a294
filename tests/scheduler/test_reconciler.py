"""
Reconciler Tests.

replace_all: full replacement, per-job error isolation, state retention.
"""

from job_scheduler.scheduler import InvalidScheduleError, Reconciler

from .conftest import FIXED_DATETIME


class TestReplaceAll:
    def test_mixed_batch(self, reconciler, registry, make_job):
        """valid, bad cron, disabled → only the valid job is registered."""
        result = reconciler.replace_all([
            make_job(name="good"),
            make_job(name="bad-cron", schedule="invalid-cron"),
            make_job(name="off", enabled=False),
        ])

        assert registry.names() == ["good"]
        assert result.registered == ["good"]
        assert result.skipped == ["off"]
        assert [f.name for f in result.failures] == ["bad-cron"]
        assert result.success_count == 1
        assert result.error_count == 1
        assert result.reconciled_at == FIXED_DATETIME

    def test_failure_message_names_expression(self, reconciler, make_job):
        result = reconciler.replace_all([make_job(name="bad", schedule="invalid-cron")])

        assert "invalid-cron" in result.failures[0].error

    def test_second_call_replaces_first(self, reconciler, registry, make_job):
        reconciler.replace_all([make_job(name="a"), make_job(name="b")])
        old_a = registry.get("a")

        reconciler.replace_all([make_job(name="a", url="https://new.example.com"), make_job(name="c")])

        assert sorted(registry.names()) == ["a", "c"]
        assert old_a.armed is False
        assert registry.get("a").definition.url == "https://new.example.com"
        assert registry.is_armed("a") and registry.is_armed("c")

    def test_empty_batch_clears_registry(self, reconciler, registry, make_job):
        reconciler.replace_all([make_job(name="a")])

        result = reconciler.replace_all([])

        assert len(registry) == 0
        assert result.registered == []

    def test_runtime_state_survives(self, reconciler, state, make_job):
        state.mark_run("a", FIXED_DATETIME)
        state.mark_success("a", FIXED_DATETIME)

        reconciler.replace_all([make_job(name="b")])

        assert state.get("a").last_success_at == FIXED_DATETIME

    def test_duplicate_names_last_wins(self, reconciler, registry, make_job):
        result = reconciler.replace_all([
            make_job(name="a", url="https://first.example.com"),
            make_job(name="a", url="https://second.example.com"),
        ])

        assert registry.names() == ["a"]
        assert result.registered == ["a"]
        assert registry.get("a").definition.url == "https://second.example.com"

    def test_duplicate_with_bad_schedule_removes_earlier(self, reconciler, registry, make_job):
        """A later bad definition still evicts the earlier one of the same name."""
        result = reconciler.replace_all([
            make_job(name="a"),
            make_job(name="a", schedule="nope"),
        ])

        assert "a" not in registry
        assert [f.name for f in result.failures] == ["a"]

    def test_registration_error_reported_per_job(
        self, registry, mock_clock, make_job, monkeypatch
    ):
        reconciler = Reconciler(registry, clock=mock_clock)
        original = registry.register

        def flaky(definition):
            if definition.name == "flaky":
                raise InvalidScheduleError(definition.name, definition.schedule, "simulated")
            return original(definition)

        monkeypatch.setattr(registry, "register", flaky)

        result = reconciler.replace_all([make_job(name="flaky"), make_job(name="ok")])

        assert result.registered == ["ok"]
        assert result.failures[0].name == "flaky"
        assert "simulated" in result.failures[0].error


class TestMappingInput:
    def test_dicts_are_parsed(self, reconciler, registry):
        result = reconciler.replace_all([
            {"name": "a", "schedule": "0 * * * *", "url": "https://example.com", "method": "post"},
        ])

        assert result.registered == ["a"]
        assert registry.get("a").definition.method.value == "POST"

    def test_missing_field_is_per_job_failure(self, reconciler, registry):
        result = reconciler.replace_all([
            {"name": "no-url", "schedule": "0 * * * *"},
            {"name": "ok", "schedule": "0 * * * *", "url": "https://example.com"},
        ])

        assert registry.names() == ["ok"]
        assert result.failures[0].name == "no-url"
        assert "url" in result.failures[0].error

    def test_unnamed_entry(self, reconciler):
        result = reconciler.replace_all([{"schedule": "0 * * * *"}])

        assert result.failures[0].name == "<unknown>"

    def test_disabled_mapping_skipped(self, reconciler, registry):
        result = reconciler.replace_all([
            {"name": "off", "schedule": "0 * * * *", "url": "https://example.com", "enabled": False},
        ])

        assert result.skipped == ["off"]
        assert len(registry) == 0


class TestLastReconciled:
    def test_timestamp_recorded(self, reconciler, mock_clock, make_job):
        assert reconciler.last_reconciled_at is None

        reconciler.replace_all([make_job()])

        assert reconciler.last_reconciled_at == mock_clock.now()


class TestDryRun:
    def test_registry_left_untouched(self, reconciler, registry, make_job):
        registry.register(make_job(name="existing"))

        result = reconciler.dry_run([
            make_job(name="every-second", schedule="* * * * * *"),
            make_job(name="bad-cron", schedule="invalid-cron"),
            make_job(name="off", enabled=False),
        ])

        assert result.registered == ["every-second"]
        assert result.skipped == ["off"]
        assert [f.name for f in result.failures] == ["bad-cron"]
        assert registry.names() == ["existing"]
        assert registry.is_armed("existing")

    def test_matches_replace_all_for_duplicates(self, reconciler, make_job):
        batch = [
            make_job(name="a"),
            make_job(name="b"),
            make_job(name="a", schedule="nope"),
            make_job(name="b", url="https://new.example.com"),
        ]

        preview = reconciler.dry_run(batch)
        applied = reconciler.replace_all(batch)

        assert preview.registered == applied.registered == ["b"]
        assert [f.name for f in preview.failures] == ["a"]

    def test_mapping_errors_reported(self, reconciler):
        result = reconciler.dry_run([{"name": "no-url", "schedule": "0 * * * *"}])

        assert [f.name for f in result.failures] == ["no-url"]
        assert result.registered == []
