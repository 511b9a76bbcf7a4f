"""UPDATE: OFFLINE -> OFFLINE. Upgrades a deployed project in place."""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from plm.state.lifecycle import TransitionName
from plm.state.models import CleanupPlan, TransitionResult, TransitionValidation
from plm.transitions.base import Transition, defined, enabled, truthy


class UpdateTransition(Transition):
    name = TransitionName.UPDATE
    config_key = "updateConfig"
    required_fields = truthy("projectId", "updateConfig", "deploymentId")
    config_fields = (
        *truthy("updateType"),
        defined("createBackup"),
        *truthy("version"),
        defined("rollbackOnFailure"),
    )
    age_threshold = timedelta(minutes=30)
    old_logs_tag = "cleanup-old-update-logs"
    trailing_tags = ("cleanup-update-temp-files", "optimize-storage-post-update")

    def build_context(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        update_config = self.config_of(context)
        return {
            "updateConfig": context.get("updateConfig"),
            "deploymentId": context.get("deploymentId"),
            "updateType": update_config.get("updateType") or "minor",
            "backupCreated": enabled(update_config, "createBackup"),
            "rollbackEnabled": enabled(update_config, "rollbackOnFailure"),
            "previousVersion": context.get("previousVersion") or "unknown",
        }

    def success_actions(self, flags: Mapping[str, Any]) -> List[str]:
        actions = ["validate-post-update-integrity"]
        if flags.get("backupCreated"):
            actions += ["archive-pre-update-backup", "create-backup-retention-policy"]
        actions += [
            "update-system-configurations",
            "cleanup-old-version-files",
            "finalize-update-process",
            "update-version-registry",
        ]
        return actions

    def failure_actions(self, flags: Mapping[str, Any]) -> List[str]:
        actions = []
        if flags.get("rollbackEnabled"):
            actions += ["attempt-rollback-to-previous", "restore-previous-backup"]
        actions += [
            "cleanup-partial-update-files",
            "alert-update-failure",
            "validate-system-integrity",
        ]
        return actions


_update = UpdateTransition()


def validate_update(from_state: str, to_state: str, context: Mapping[str, Any]) -> TransitionValidation:
    return _update.validate(from_state, to_state, context)


def execute_update(project_id: str, context: Mapping[str, Any],
                   from_state: Optional[str] = None, to_state: Optional[str] = None) -> TransitionResult:
    return _update.execute(project_id, context, from_state, to_state)


def cleanup_update(result: TransitionResult, project_id: str, now=None) -> CleanupPlan:
    return _update.cleanup(result, project_id, now)
