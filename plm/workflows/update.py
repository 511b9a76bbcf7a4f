"""
UPDATE workflow: OFFLINE -> OFFLINE.

Upgrades a deployed project in place. A backup step runs before the
transition unless `createBackup` is False, and recovery reports whether that
backup should be restored.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import RecoveryPlan, WorkflowOutcome
from plm.workflows.engine import StepFunction, WorkflowEngine, WorkflowRun
from plm.workflows.recovery import RecoveryProfile

UPDATE_RECOVERY = RecoveryProfile(
    validation_cleanup="cleanup-partial-update",
    retry_tag="retry-update-with-elevated-permissions",
    verification_tags=(
        "diagnose-update-state",
        "validate-update-integrity",
        "force-cleanup-partial-update",
    ),
    generic_tags=("generic-update-cleanup",),
    restore_tags=("restore-offline-state",),
    trailing_tags=("verify-project-integrity",),
    restore_artifact="backup",
)


def build_update_context(
    project_id: str,
    update_config: Mapping[str, Any],
    current_state: Optional[LifecycleState] = None,
) -> Dict[str, Any]:
    return {
        "projectId": project_id,
        "deploymentId": update_config.get("deploymentId"),
        "updateConfig": {
            "updateType": update_config.get("updateType"),
            "createBackup": update_config.get("createBackup") is not False,
            "version": update_config.get("version") or "auto",
            "rollbackOnFailure": update_config.get("rollbackOnFailure") is not False,
            "preserveData": update_config.get("preserveData") is not False,
            "incrementalUpdate": update_config.get("incrementalUpdate") or False,
        },
        "previousVersion": update_config.get("previousVersion") or "unknown",
    }


class UpdateWorkflowEngine(WorkflowEngine):
    transition_name = TransitionName.UPDATE
    config_name = "updateConfig"
    required_keys = ("deploymentId", "updateType", "projectPath")
    identifier_key = "updateId"
    identifier_prefix = "update"
    recovery_profile = UPDATE_RECOVERY

    def build_context(self, project_id, config, current_state=None):
        return build_update_context(project_id, config, current_state)

    def make_identifiers(self, project_id, config):
        identifiers = super().make_identifiers(project_id, config)
        backup = config.get("createBackup") is not False
        identifiers["backupId"] = f"backup-{identifiers['updateId']}" if backup else None
        return identifiers

    def extra_steps(self, run: WorkflowRun) -> List[Tuple[str, StepFunction]]:
        if run.identifiers.get("backupId") is None:
            return []
        return [("create-backup", self._create_backup)]

    async def _create_backup(self, run: WorkflowRun) -> None:
        self.workflow_logger.log(
            "backup-creation",
            {
                "projectId": run.project_id,
                "backupId": run.identifiers["backupId"],
                "projectPath": run.path,
            },
            run.options,
        )
        run.checks["backupId"] = run.identifiers["backupId"]


async def execute_update_workflow(
    project_id: str,
    update_config: Mapping[str, Any],
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> WorkflowOutcome:
    """
    Update an OFFLINE project in place.

    Args:
        project_id: Project identifier
        update_config: {deploymentId, updateType, projectPath, createBackup?,
            version?, rollbackOnFailure?, preserveData?, incrementalUpdate?,
            previousVersion?}
        options: Per-call options
        **deps: Engine collaborators
    """
    return await UpdateWorkflowEngine(**deps).run(project_id, update_config, options)


async def recover_update_workflow(
    project_id: str,
    update_config: Mapping[str, Any],
    error: BaseException,
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> RecoveryPlan:
    return await UpdateWorkflowEngine(**deps).recover(project_id, update_config, error, options)


__all__ = [
    "UPDATE_RECOVERY",
    "UpdateWorkflowEngine",
    "build_update_context",
    "execute_update_workflow",
    "recover_update_workflow",
]
