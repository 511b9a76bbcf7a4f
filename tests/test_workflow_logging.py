"""
Tests for WorkflowLogger: severity mapping, sanitization and sink handling.
"""

from __future__ import annotations

import pytest

from plm.events.models import LogLevel
from plm.events.sink import FileLogSink
from plm.observability.logging import clear_correlation_id, set_correlation_id
from plm.state.exceptions import ValidationError
from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import CleanupPlan
from plm.workflows.logging import MAX_PATH_LENGTH, WorkflowLogger


class BrokenSink:
    def append(self, entry):
        raise OSError("read-only filesystem")


@pytest.fixture
def build_logger(sink):
    return WorkflowLogger(TransitionName.BUILD, sink=sink)


@pytest.fixture
def delete_logger(sink):
    return WorkflowLogger(
        TransitionName.DELETE,
        sink=sink,
        redact_confirm_token=True,
        critical_events=("transition-start",),
    )


class TestLevels:
    @pytest.mark.parametrize(
        "event, level",
        [
            ("workflow-start", LogLevel.INFO),
            ("workflow-success", LogLevel.INFO),
            ("backup-creation", LogLevel.INFO),
            ("validation-failed", LogLevel.WARN),
            ("build-warning", LogLevel.WARN),
            ("workflow-error", LogLevel.ERROR),
            ("recovery-failed", LogLevel.ERROR),
            ("build-failed", LogLevel.ERROR),
            ("transition-start", LogLevel.DEBUG),
            ("recovery-start", LogLevel.DEBUG),
            ("something-else", LogLevel.DEBUG),
        ],
    )
    def test_build_levels(self, build_logger, event, level):
        assert build_logger.level_for(event) == level

    def test_family_specific_events(self, build_logger):
        assert build_logger.level_for("deploy-failed") == LogLevel.DEBUG

    def test_critical_events(self, delete_logger):
        assert delete_logger.level_for("transition-start") == LogLevel.CRITICAL
        receipt = delete_logger.log("transition-start", {"projectId": "p1"})
        assert receipt.logged
        assert receipt.log_level == "CRITICAL"


class TestLog:
    def test_entry_fields(self, build_logger, sink):
        set_correlation_id("build-corr-1")
        try:
            receipt = build_logger.log("workflow-start", {"projectId": "p1", "buildId": "b-1"})
        finally:
            clear_correlation_id()

        assert receipt.log_level == "INFO"
        (entry,) = sink.entries
        assert entry.engine == "build-workflow"
        assert entry.event == "workflow-start"
        assert entry.project_id == "p1"
        assert entry.correlation_id == "build-corr-1"
        assert entry.message == "Workflow build démarré"
        assert entry.data == {"projectId": "p1", "buildId": "b-1"}

    def test_unknown_event_message(self, build_logger, sink):
        build_logger.log("cache-warmup", {})
        assert sink.entries[0].message == "Événement workflow: cache-warmup"

    @pytest.mark.parametrize(
        "event, data, message",
        [
            ("", {}, "eventType requis string"),
            (None, {}, "eventType requis string"),
            ("workflow-start", None, "data requis object"),
            ("workflow-start", "p1", "data requis object"),
        ],
    )
    def test_rejects_malformed_arguments(self, build_logger, event, data, message):
        with pytest.raises(ValidationError, match=message):
            build_logger.log(event, data)

    def test_file_logging_disabled(self, build_logger, sink):
        receipt = build_logger.log("workflow-start", {}, {"enable_file_logging": False})
        assert receipt.logged
        assert sink.entries == []

    def test_sink_failure_is_swallowed(self):
        logger = WorkflowLogger(TransitionName.START, sink=BrokenSink())
        receipt = logger.log("workflow-start", {"projectId": "p1"})
        assert receipt.logged

    def test_without_sink(self):
        assert WorkflowLogger(TransitionName.START).log("workflow-start", {}).logged

    def test_file_sink_round_trip(self, tmp_path):
        sink = FileLogSink(tmp_path / "logs" / "workflows.jsonl")
        logger = WorkflowLogger(TransitionName.DEPLOY, sink=sink)
        logger.log("workflow-start", {"projectId": "p1", "fromState": LifecycleState.BUILT})
        logger.log("workflow-success", {"projectId": "p1", "finalState": LifecycleState.OFFLINE})

        entries = sink.read_entries()
        assert [e.event for e in entries] == ["workflow-start", "workflow-success"]
        assert entries[0].data["fromState"] == "BUILT"
        assert entries[1].level == "INFO"

    def test_file_sink_skips_malformed_lines(self, tmp_path):
        path = tmp_path / "workflows.jsonl"
        sink = FileLogSink(path)
        WorkflowLogger(TransitionName.BUILD, sink=sink).log("workflow-start", {})
        with open(path, "a", encoding="utf-8") as f:
            f.write("not json\n\n")
        assert len(sink.read_entries()) == 1


class TestSanitize:
    def test_drops_sensitive_keys_at_any_depth(self, build_logger):
        data = {
            "projectId": "p1",
            "password": "hunter2",
            "config": {
                "apiKey": "k",
                "nested": [{"secret": "s", "keep": 1}],
                "token": "t",
            },
            "access_token": "tok",
        }
        assert build_logger.sanitize(data) == {
            "projectId": "p1",
            "config": {"nested": [{"keep": 1}]},
        }

    def test_confirm_token_kept_unless_redacting(self, build_logger):
        assert build_logger.sanitize({"confirmToken": "delete-p1-confirm"}) == {
            "confirmToken": "delete-p1-confirm"
        }

    def test_confirm_token_redacted(self, delete_logger):
        assert delete_logger.sanitize({"confirmToken": "delete-p1-confirm"}) == {
            "confirmToken": "[REDACTED]"
        }
        assert delete_logger.sanitize({"config": {"confirmToken": ""}}) == {
            "config": {"confirmToken": "[MISSING]"}
        }

    def test_long_paths_truncated(self, build_logger):
        long_path = "/srv/" + "x" * 200
        cleaned = build_logger.sanitize({"projectPath": long_path, "other": long_path})
        assert cleaned["projectPath"] == long_path[:MAX_PATH_LENGTH] + "..."
        assert cleaned["other"] == long_path

    def test_short_paths_untouched(self, build_logger):
        assert build_logger.sanitize({"projectPath": "/srv/p1"}) == {"projectPath": "/srv/p1"}

    def test_input_not_mutated(self, build_logger):
        data = {"password": "x", "config": {"token": "t"}}
        build_logger.sanitize(data)
        assert data == {"password": "x", "config": {"token": "t"}}

    def test_json_safe_values(self, build_logger):
        cleaned = build_logger.sanitize(
            {"state": LifecycleState.DRAFT, "tags": ("a", "b"), "count": 3, "missing": None}
        )
        assert cleaned == {"state": "DRAFT", "tags": ["a", "b"], "count": 3, "missing": None}

    def test_models_are_dumped(self, build_logger):
        cleaned = build_logger.sanitize({"plan": CleanupPlan(actions=["finalize-build"])})
        assert cleaned == {"plan": {"cleaned": True, "actions": ["finalize-build"]}}
