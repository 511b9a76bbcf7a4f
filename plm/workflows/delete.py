"""
DELETE workflow: any state -> VOID.

The source state is not known in advance: the engine polls every detector
in lifecycle order and takes the first confident match. An archive step runs
before the transition unless `createBackup` is False. The confirmation token
is never written to logs.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from plm.state.exceptions import FailureKind, StepError
from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import RecoveryPlan, WorkflowOutcome
from plm.workflows.engine import StepFunction, WorkflowEngine, WorkflowRun
from plm.workflows.recovery import PlanDraft, RecoveryManager, RecoveryProfile

DELETE_RECOVERY = RecoveryProfile(
    validation_cleanup="cleanup-partial-delete",
    retry_tag="retry-delete-with-force-mode",
    retry_limit=1,
    verification_tags=(
        "diagnose-delete-state",
        "validate-deletion-completeness",
        "force-complete-deletion",
    ),
    generic_tags=("generic-delete-cleanup",),
    restore_tags=("verify-project-integrity",),
    trailing_tags=("audit-delete-attempt",),
    restore_artifact="archive",
    recovery_log_tag="log-recovery-details-secure",
)


def build_delete_context(
    project_id: str,
    delete_config: Mapping[str, Any],
    current_state: Optional[LifecycleState] = None,
) -> Dict[str, Any]:
    return {
        "projectId": project_id,
        "currentState": current_state.value if current_state else None,
        "deleteConfig": {
            "forceDelete": delete_config.get("forceDelete") is True,
            "createBackup": delete_config.get("createBackup") is not False,
            "reason": delete_config.get("reason"),
            "removeDependencies": delete_config.get("removeDependencies") is not False,
        },
        "confirmToken": delete_config.get("confirmToken"),
    }


class DeleteRecoveryManager(RecoveryManager):
    """DELETE treats a missing project as already deleted."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._handlers[FailureKind.STATE_DETECTION_FAILURE] = self._state_detection_failure

    async def _project_missing(self, project_id, config, error, options) -> PlanDraft:
        return PlanDraft(
            FailureKind.PROJECT_MISSING.value,
            ["detect-project-already-deleted", "verify-void-state"],
            recovered=True,
        )

    async def _state_detection_failure(self, project_id, config, error, options) -> PlanDraft:
        draft = PlanDraft(
            FailureKind.STATE_DETECTION_FAILURE.value,
            ["attempt-force-state-detection"],
        )
        try:
            void = await self.detectors[LifecycleState.VOID].detect(config.get("projectPath"))
        except Exception as e:
            self.logger.warning(f"Forced VOID detection for {project_id} failed: {e}")
            draft.actions.append("force-detection-failed")
            return draft

        if void.meets(self.thresholds.verify):
            draft.actions.append("detect-partial-deletion-success")
            draft.recovered = True
        else:
            draft.actions.append("detect-project-still-exists")
        return draft


class DeleteWorkflowEngine(WorkflowEngine):
    transition_name = TransitionName.DELETE
    config_name = "deleteConfig"
    required_keys = ("confirmToken", "reason", "projectPath")
    identifier_key = "deleteId"
    identifier_prefix = "delete"
    recovery_profile = DELETE_RECOVERY
    recovery_class = DeleteRecoveryManager
    critical_events = ("transition-start",)
    redact_confirm_token = True

    def build_context(self, project_id, config, current_state=None):
        return build_delete_context(project_id, config, current_state)

    def make_identifiers(self, project_id, config):
        identifiers = super().make_identifiers(project_id, config)
        identifiers["archiveId"] = f"archive-{identifiers['deleteId']}"
        return identifiers

    async def detect_source(self, run: WorkflowRun) -> LifecycleState:
        threshold = self.source_threshold()
        for state, detector in self.detectors.items():
            try:
                detection = await detector.detect(run.path)
            except Exception as e:
                self.logger.warning(f"{state.value} detection failed for {run.project_id}: {e}")
                continue
            if detection.meets(threshold):
                run.checks["sourceDetection"] = detection
                return state
        raise StepError(
            "Impossible de déterminer l'état actuel du projet",
            FailureKind.STATE_DETECTION_FAILURE,
        )

    def extra_steps(self, run: WorkflowRun) -> List[Tuple[str, StepFunction]]:
        if run.config.get("createBackup") is False:
            return []
        return [("create-archive", self._create_archive)]

    async def _create_archive(self, run: WorkflowRun) -> None:
        self.workflow_logger.log(
            "archive-creation",
            {
                "projectId": run.project_id,
                "archiveId": run.identifiers["archiveId"],
                "fromState": run.source_state,
                "reason": run.config.get("reason"),
            },
            run.options,
        )
        run.checks["archiveId"] = run.identifiers["archiveId"]


async def execute_delete_workflow(
    project_id: str,
    delete_config: Mapping[str, Any],
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> WorkflowOutcome:
    """
    Delete a project from whatever state it is in.

    Args:
        project_id: Project identifier
        delete_config: {confirmToken, reason, projectPath, forceDelete?,
            createBackup?, removeDependencies?}; confirmToken must equal
            ``delete-<project_id>-confirm``
        options: Per-call options
        **deps: Engine collaborators
    """
    return await DeleteWorkflowEngine(**deps).run(project_id, delete_config, options)


async def recover_delete_workflow(
    project_id: str,
    delete_config: Mapping[str, Any],
    error: BaseException,
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> RecoveryPlan:
    return await DeleteWorkflowEngine(**deps).recover(project_id, delete_config, error, options)


__all__ = [
    "DELETE_RECOVERY",
    "DeleteRecoveryManager",
    "DeleteWorkflowEngine",
    "build_delete_context",
    "execute_delete_workflow",
    "recover_delete_workflow",
]
