"""
Tests for the validate/execute/cleanup triads of the six transitions.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from plm.state.exceptions import ValidationError
from plm.state.lifecycle import LifecycleState, TransitionName
from plm.transitions import (
    TRANSITIONS,
    cleanup_build,
    cleanup_create,
    cleanup_delete,
    cleanup_update,
    execute_build,
    execute_delete,
    execute_update,
    expected_confirm_token,
    validate_build,
    validate_create,
    validate_delete,
    validate_deploy,
    validate_start,
    validate_update,
)


@pytest.fixture
def build_context():
    return {
        "projectId": "p1",
        "projectPath": "/srv/p1",
        "buildConfig": {"target": "web", "environment": "production"},
    }


@pytest.fixture
def delete_context():
    return {
        "projectId": "p1",
        "currentState": "OFFLINE",
        "deleteConfig": {
            "forceDelete": False,
            "createBackup": True,
            "reason": "decommissioned",
            "removeDependencies": True,
        },
        "confirmToken": "delete-p1-confirm",
    }


class TestValidate:
    def test_build_ready(self, build_context):
        validation = validate_build("DRAFT", "BUILT", build_context)
        assert validation.valid
        assert validation.can_transition
        assert validation.requirements == []

    def test_missing_fields_reported_in_order(self):
        validation = validate_build("DRAFT", "BUILT", {})
        assert validation.valid
        assert not validation.can_transition
        assert validation.requirements == [
            "projectId manquant",
            "buildConfig manquant",
            "projectPath manquant",
        ]

    def test_missing_config_field(self, build_context):
        del build_context["buildConfig"]["environment"]
        validation = validate_build("DRAFT", "BUILT", build_context)
        assert validation.requirements == ["buildConfig.environment manquant"]

    def test_defined_fields_accept_falsy_values(self):
        context = {
            "projectId": "p1",
            "deploymentId": "deploy-p1",
            "startConfig": {"healthCheck": "/health", "timeout": 0, "readinessProbe": "/ready"},
        }
        assert validate_start("OFFLINE", "ONLINE", context).can_transition

    def test_deploy_requires_port(self):
        context = {
            "projectId": "p1",
            "projectPath": "/srv/p1",
            "deployConfig": {"target": "docker", "environment": "staging"},
        }
        assert validate_deploy("BUILT", "OFFLINE", context).requirements == [
            "deployConfig.port manquant"
        ]

    def test_update_requirements(self):
        context = {
            "projectId": "p1",
            "deploymentId": "deploy-p1",
            "updateConfig": {"updateType": "minor", "createBackup": False, "version": "1.2.0"},
        }
        assert validate_update("OFFLINE", "OFFLINE", context).requirements == [
            "updateConfig.rollbackOnFailure manquant"
        ]

    def test_create_requirements(self):
        validation = validate_create("VOID", "DRAFT", {"templateId": "react"})
        assert validation.requirements == ["projectPath manquant", "projectName manquant"]

    @pytest.mark.parametrize(
        "from_state, to_state, context, message",
        [
            ("", "BUILT", {}, "fromState requis string"),
            ("DRAFT", None, {}, "toState requis string"),
            ("DRAFT", "BUILT", None, "context requis object"),
            ("DRAFT", "BUILT", ["not", "a", "mapping"], "context requis object"),
        ],
    )
    def test_malformed_arguments(self, from_state, to_state, context, message):
        with pytest.raises(ValidationError, match=message):
            validate_build(from_state, to_state, context)

    def test_foreign_edge(self, build_context):
        with pytest.raises(ValidationError):
            validate_build("BUILT", "OFFLINE", build_context)
        with pytest.raises(ValidationError):
            validate_build("DRAFT", "OFFLINE", build_context)


class TestDeleteValidation:
    def test_valid_token(self, delete_context):
        validation = validate_delete("OFFLINE", "VOID", delete_context)
        assert validation.can_transition

    def test_any_source_state(self, delete_context):
        for state in LifecycleState:
            assert validate_delete(state.value, "VOID", delete_context).valid

    def test_wrong_token(self, delete_context):
        delete_context["confirmToken"] = "delete-p2-confirm"
        validation = validate_delete("OFFLINE", "VOID", delete_context)
        assert not validation.can_transition
        assert validation.requirements == ["confirmToken invalide"]

    def test_missing_token(self, delete_context):
        del delete_context["confirmToken"]
        validation = validate_delete("OFFLINE", "VOID", delete_context)
        assert validation.requirements == ["confirmToken manquant"]

    def test_expected_token(self):
        assert expected_confirm_token("p1") == "delete-p1-confirm"


STATE_PAIRS = [(source, target) for source in LifecycleState for target in LifecycleState]


def is_edge(transition, source, target):
    return source in transition.from_states and target == transition.to_state


class TestEdges:
    @pytest.mark.parametrize("name", list(TRANSITIONS))
    @pytest.mark.parametrize("source, target", STATE_PAIRS)
    def test_validate_accepts_only_its_edge(self, name, source, target):
        transition = TRANSITIONS[name]
        if is_edge(transition, source, target):
            assert transition.validate(source.value, target.value, {}).valid
        else:
            with pytest.raises(ValidationError, match=name.value):
                transition.validate(source.value, target.value, {})

    @pytest.mark.parametrize("name", list(TRANSITIONS))
    @pytest.mark.parametrize("source", list(LifecycleState))
    def test_execute_rejects_foreign_source(self, name, source):
        transition = TRANSITIONS[name]
        if source in transition.from_states:
            pytest.skip(f"{source.value} is a source of {name.value}")
        with pytest.raises(ValidationError, match="depuis état invalide"):
            transition.execute("p1", {}, from_state=source.value)

    @pytest.mark.parametrize("name", list(TRANSITIONS))
    @pytest.mark.parametrize("target", list(LifecycleState))
    def test_execute_rejects_foreign_target(self, name, target):
        transition = TRANSITIONS[name]
        if target == transition.to_state:
            pytest.skip(f"{target.value} is the target of {name.value}")
        with pytest.raises(ValidationError, match=f"va vers {transition.to_state.value}"):
            transition.execute("p1", {}, to_state=target.value)

    @pytest.mark.parametrize("target", [s for s in LifecycleState if s != LifecycleState.VOID])
    def test_delete_only_goes_to_void(self, delete_context, target):
        with pytest.raises(ValidationError, match=f"DELETE va vers VOID, pas {target.value}"):
            validate_delete("OFFLINE", target.value, delete_context)
        with pytest.raises(ValidationError, match="DELETE va vers VOID"):
            execute_delete("p1", delete_context, to_state=target.value)


class TestExecute:
    def test_build_result(self, build_context):
        result = execute_build("p1", build_context)
        assert result.success
        assert result.from_state == "DRAFT"
        assert result.to_state == LifecycleState.BUILT
        assert result.transition_data.project_id == "p1"
        assert result.transition_data.context["buildType"] == "production"
        assert result.transition_data.context["optimization"] is True

    def test_explicit_edge(self, build_context):
        result = execute_build("p1", build_context, from_state="DRAFT", to_state="BUILT")
        assert result.to_state == LifecycleState.BUILT
        with pytest.raises(ValidationError):
            execute_build("p1", build_context, from_state="OFFLINE")

    def test_missing_project_id(self, build_context):
        with pytest.raises(ValidationError, match="projectId requis string"):
            execute_build("", build_context)

    def test_delete_origin(self, delete_context):
        assert execute_delete("p1", delete_context).from_state == "OFFLINE"
        del delete_context["currentState"]
        assert execute_delete("p1", delete_context).from_state == "UNKNOWN"

    def test_delete_flags(self, delete_context):
        delete_context["deleteConfig"]["forceDelete"] = "yes"
        flags = execute_delete("p1", delete_context).transition_data.context
        assert flags["forceDelete"] is False
        assert flags["backupRequested"] is True
        assert flags["deleteReason"] == "decommissioned"

    def test_update_flags(self):
        context = {
            "projectId": "p1",
            "deploymentId": "deploy-p1",
            "updateConfig": {"updateType": "major", "createBackup": False},
        }
        flags = execute_update("p1", context).transition_data.context
        assert flags["backupCreated"] is False
        assert flags["rollbackEnabled"] is True
        assert flags["previousVersion"] == "unknown"


class TestCleanup:
    def test_build_success(self, build_context):
        result = execute_build("p1", build_context)
        plan = cleanup_build(result, "p1")
        assert plan.cleaned
        assert plan.actions == [
            "cleanup-temp-source-files",
            "compress-build-artifacts",
            "archive-build-logs",
            "finalize-build",
            "clear-validation-cache",
            "optimize-disk-space",
        ]

    def test_old_result_flags_logs(self, build_context):
        result = execute_build("p1", build_context)
        plan = cleanup_build(result, "p1", now=result.timestamp + timedelta(minutes=31))
        assert plan.actions[-3:] == [
            "cleanup-old-build-logs",
            "clear-validation-cache",
            "optimize-disk-space",
        ]

    def test_cleanup_is_pure(self, build_context):
        result = execute_build("p1", build_context)
        now = result.timestamp + timedelta(minutes=1)
        assert cleanup_build(result, "p1", now=now) == cleanup_build(result, "p1", now=now)

    def test_create_failure(self):
        failed = TRANSITIONS[TransitionName.CREATE].failed_result("p1")
        plan = cleanup_create(failed, "p1")
        assert plan.actions == [
            "rollback-state-to-void",
            "clear-temporary-references",
            "clear-validation-cache",
        ]

    def test_update_with_backup(self):
        context = {"projectId": "p1", "deploymentId": "d", "updateConfig": {"updateType": "minor"}}
        plan = cleanup_update(execute_update("p1", context), "p1")
        assert plan.actions == [
            "validate-post-update-integrity",
            "archive-pre-update-backup",
            "create-backup-retention-policy",
            "update-system-configurations",
            "cleanup-old-version-files",
            "finalize-update-process",
            "update-version-registry",
            "clear-validation-cache",
            "cleanup-update-temp-files",
            "optimize-storage-post-update",
        ]

    def test_delete_success(self, delete_context):
        plan = cleanup_delete(execute_delete("p1", delete_context), "p1")
        assert plan.actions == [
            "create-final-project-backup",
            "archive-project-history",
            "destroy-all-project-resources",
            "remove-project-from-registries",
            "release-all-network-resources",
            "cleanup-project-dependencies",
            "notify-dependent-projects",
            "mark-project-destroyed",
            "create-deletion-audit-log",
            "clear-validation-cache",
            "cleanup-deletion-temp-files",
            "optimize-storage-post-deletion",
            "update-system-metrics",
        ]

    def test_delete_minimal(self, delete_context):
        delete_context["deleteConfig"].update(createBackup=False, removeDependencies=False)
        plan = cleanup_delete(execute_delete("p1", delete_context), "p1")
        assert plan.actions[:3] == [
            "destroy-all-project-resources",
            "remove-project-from-registries",
            "release-all-network-resources",
        ]
        assert "notify-dependent-projects" not in plan.actions

    def test_missing_project_id(self, build_context):
        with pytest.raises(ValidationError):
            cleanup_build(execute_build("p1", build_context), "")
