"""
Tests for advisory recovery planning, driven through each family's engine.
"""

from __future__ import annotations

import pytest

from conftest import materialize
from plm.state.exceptions import FailureKind, StepError, ValidationError, WorkflowError
from plm.state.lifecycle import LifecycleState
from plm.workflows import (
    BuildWorkflowEngine,
    CreateWorkflowEngine,
    DeleteWorkflowEngine,
    UpdateWorkflowEngine,
)

BUILD_COMMON = ["clear-build-cache", "invalidate-state-cache", "log-recovery-details"]
DELETE_COMMON = [
    "clear-delete-cache",
    "invalidate-state-cache",
    "audit-delete-attempt",
    "log-recovery-details-secure",
]


@pytest.fixture
def build_engine(deps):
    return BuildWorkflowEngine(**deps)


@pytest.fixture
def delete_engine(deps):
    return DeleteWorkflowEngine(**deps)


@pytest.fixture
def config(project_path):
    return {"target": "web", "environment": "production", "projectPath": str(project_path)}


def failure(kind: FailureKind, reason: str = "boom", **details) -> StepError:
    return StepError(reason, kind, details or None)


class TestArguments:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "project_id, cfg, error, message",
        [
            ("", {}, RuntimeError("x"), "projectId requis string"),
            ("p1", None, RuntimeError("x"), "buildConfig requis object"),
            ("p1", {}, "not an error", "error requis Error"),
        ],
    )
    async def test_rejects_malformed_arguments(self, build_engine, project_id, cfg, error, message):
        with pytest.raises(ValidationError, match=message):
            await build_engine.recover(project_id, cfg, error)


class TestStrategies:
    @pytest.mark.asyncio
    async def test_target_already_reached(self, build_engine, config, project_path):
        materialize(project_path, LifecycleState.BUILT)
        plan = await build_engine.recover("p1", config, failure(FailureKind.STATE_CONFLICT))
        assert plan.recovered
        assert plan.strategy == "state-conflict"
        assert plan.actions == ["detect-current-state-built", "project-already-built", *BUILD_COMMON]

    @pytest.mark.asyncio
    async def test_source_low_confidence(self, build_engine, config, project_path):
        project_path.mkdir()
        plan = await build_engine.recover("p1", config, failure(FailureKind.STATE_CONFLICT))
        assert plan.recovered
        assert plan.actions[:2] == [
            "detect-current-state-draft-low-confidence",
            "force-draft-state-validation",
        ]

    @pytest.mark.asyncio
    async def test_wrong_state(self, build_engine, config):
        plan = await build_engine.recover("p1", config, failure(FailureKind.STATE_CONFLICT))
        assert not plan.recovered
        assert plan.actions[:2] == ["detect-current-state-invalid", "abort-build-wrong-state"]

    @pytest.mark.asyncio
    async def test_create_conflict_on_free_path(self, deps, project_path):
        template = {"templateId": "react", "projectPath": str(project_path), "projectName": "Demo"}
        plan = await CreateWorkflowEngine(**deps).recover(
            "p1", template, failure(FailureKind.STATE_CONFLICT)
        )
        assert not plan.recovered
        assert plan.actions == [
            "detect-current-state-void",
            "clear-workflow-cache",
            "invalidate-state-cache",
            "log-recovery-details",
        ]

    @pytest.mark.asyncio
    async def test_validation_requirements_counted(self, build_engine, config):
        error = failure(FailureKind.VALIDATION_FAILURE, requirements=["a", "b", "c"])
        plan = await build_engine.recover("p1", config, error)
        assert plan.actions == ["missing-requirements-3", "cleanup-partial-build", *BUILD_COMMON]

    @pytest.mark.asyncio
    async def test_validation_requirements_parsed_from_reason(self, build_engine, config):
        error = WorkflowError(
            "Validation échec: projectId manquant, buildConfig manquant",
            FailureKind.VALIDATION_FAILURE,
        )
        plan = await build_engine.recover("p1", config, error)
        assert plan.actions[0] == "missing-requirements-2"

    @pytest.mark.asyncio
    async def test_filesystem_retry_proposed(self, build_engine, config):
        plan = await build_engine.recover("p1", config, failure(FailureKind.FILESYSTEM_FAILURE))
        assert not plan.recovered
        assert plan.actions == [
            "check-build-permissions",
            "cleanup-partial-artifacts",
            "retry-build-with-backup-path",
            "retry-scheduled",
            *BUILD_COMMON,
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "options",
        [{"retry_count": 2}, {"retry_count": 5}, {"allow_retry": False}],
    )
    async def test_filesystem_retry_withheld(self, build_engine, config, options):
        plan = await build_engine.recover(
            "p1", config, failure(FailureKind.FILESYSTEM_FAILURE), options
        )
        assert "retry-scheduled" not in plan.actions

    @pytest.mark.asyncio
    async def test_delete_allows_a_single_retry(self, delete_engine, project_path):
        cfg = {"projectPath": str(project_path)}
        error = failure(FailureKind.FILESYSTEM_FAILURE)
        first = await delete_engine.recover("p1", cfg, error, {"retry_count": 0})
        second = await delete_engine.recover("p1", cfg, error, {"retry_count": 1})
        assert "retry-delete-with-force-mode" in first.actions
        assert "retry-delete-with-force-mode" not in second.actions

    @pytest.mark.asyncio
    async def test_transition_rollback(self, build_engine, config):
        plan = await build_engine.recover("p1", config, failure(FailureKind.TRANSITION_FAILURE))
        assert plan.strategy == "transition-failure"
        assert plan.actions[:3] == [
            "rollback-cleanup-partial-build-artifacts",
            "rollback-clear-compilation-cache",
            "rollback-rollback-state-to-draft",
        ]
        assert plan.backup_restored is None
        assert plan.archive_restored is None

    @pytest.mark.asyncio
    async def test_update_rollback_restores_backup(self, deps, project_path):
        engine = UpdateWorkflowEngine(**deps)
        cfg = {"deploymentId": "d", "updateType": "minor", "projectPath": str(project_path)}
        plan = await engine.recover("p1", cfg, failure(FailureKind.TRANSITION_FAILURE))
        assert plan.backup_restored is True
        assert plan.archive_restored is None
        assert "restore-backup-requested" in plan.actions
        assert "backup-restored-successfully" in plan.actions
        assert plan.actions[-3:] == [
            "invalidate-state-cache",
            "verify-project-integrity",
            "log-recovery-details",
        ]

        cfg["createBackup"] = False
        plan = await engine.recover("p1", cfg, failure(FailureKind.TRANSITION_FAILURE))
        assert plan.backup_restored is False
        assert "restore-backup-requested" not in plan.actions

    @pytest.mark.asyncio
    async def test_verification_failure(self, build_engine, config):
        plan = await build_engine.recover(
            "p1", config, failure(FailureKind.STATE_VERIFICATION_FAILURE)
        )
        assert plan.actions == [
            "diagnose-build-state",
            "validate-build-artifacts",
            "force-cleanup-partial-build",
            *BUILD_COMMON,
        ]

    @pytest.mark.asyncio
    async def test_step_timeout(self, build_engine, delete_engine, config):
        build_plan = await build_engine.recover("p1", config, failure(FailureKind.STEP_TIMEOUT))
        assert build_plan.actions[:2] == ["cancel-stalled-build-step", "restore-draft-state"]

        delete_plan = await delete_engine.recover("p1", config, failure(FailureKind.STEP_TIMEOUT))
        assert delete_plan.actions == ["cancel-stalled-delete-step", *DELETE_COMMON]

    @pytest.mark.asyncio
    async def test_unclassified_error(self, delete_engine, project_path):
        plan = await delete_engine.recover(
            "p1", {"projectPath": str(project_path)}, RuntimeError("kaboom")
        )
        assert plan.strategy == "unknown-error"
        assert plan.archive_restored is True
        assert plan.actions == [
            "generic-delete-cleanup",
            "attempt-archive-restore",
            "verify-project-integrity",
            *DELETE_COMMON,
        ]

    @pytest.mark.asyncio
    async def test_delete_forced_detection(self, delete_engine, project_path):
        error = failure(FailureKind.STATE_DETECTION_FAILURE)
        cfg = {"projectPath": str(project_path)}

        plan = await delete_engine.recover("p1", cfg, error)
        assert plan.recovered
        assert plan.actions[:2] == [
            "attempt-force-state-detection",
            "detect-partial-deletion-success",
        ]

        plan = await delete_engine.recover("p1", {}, error)
        assert not plan.recovered
        assert plan.actions[:2] == ["attempt-force-state-detection", "force-detection-failed"]


class TestCommonActions:
    @pytest.mark.asyncio
    async def test_recovery_logs_disabled(self, build_engine, config):
        plan = await build_engine.recover(
            "p1", config, failure(FailureKind.PROJECT_MISSING), {"enable_recovery_logs": False}
        )
        assert plan.actions == [
            "detect-project-deletion",
            "abort-build-no-project",
            "clear-build-cache",
            "invalidate-state-cache",
        ]

    @pytest.mark.asyncio
    async def test_logged_around_plan(self, build_engine, config, sink):
        await build_engine.recover("p1", config, failure(FailureKind.PROJECT_MISSING))
        assert sink.events() == ["recovery-start", "recovery-complete"]
        assert sink.entries[0].data["errorType"] == "project-missing"
        assert sink.entries[1].data["strategy"] == "project-missing"


class TestDegradation:
    @pytest.mark.asyncio
    async def test_failure_inside_recovery(self, build_engine, sink):
        # No projectPath: the state re-probe itself raises
        plan = await build_engine.recover("p1", {}, failure(FailureKind.STATE_CONFLICT))
        assert not plan.recovered
        assert plan.strategy == "recovery-failed"
        assert plan.actions == ["recovery-error"]

        failed = sink.entries[-1]
        assert failed.event == "recovery-failed"
        assert failed.level == "ERROR"
        assert failed.data["originalError"] == "boom"
