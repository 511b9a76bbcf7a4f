"""
DELETE: any state -> VOID.

The only transition with more than one origin; the origin is read from
``context["currentState"]``. Deleting also requires a confirmation token of
the exact form ``delete-<projectId>-confirm``.
"""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from plm.state.lifecycle import TransitionName, parse_state
from plm.state.models import CleanupPlan, TransitionResult, TransitionValidation
from plm.transitions.base import Transition, defined, enabled, truthy


def expected_confirm_token(project_id: Any) -> str:
    return f"delete-{project_id}-confirm"


class DeleteTransition(Transition):
    name = TransitionName.DELETE
    config_key = "deleteConfig"
    required_fields = truthy("projectId", "deleteConfig", "confirmToken")
    config_fields = (
        defined("forceDelete"),
        defined("createBackup"),
        *truthy("reason"),
        defined("removeDependencies"),
    )
    age_threshold = timedelta(minutes=60)
    old_logs_tag = "cleanup-old-deletion-logs"
    trailing_tags = (
        "cleanup-deletion-temp-files",
        "optimize-storage-post-deletion",
        "update-system-metrics",
    )

    def requirements(self, context: Mapping[str, Any]) -> List[str]:
        missing = super().requirements(context)
        token = context.get("confirmToken")
        # A present but wrong token is reported even though the key exists
        if token and token != expected_confirm_token(context.get("projectId")):
            missing.append("confirmToken invalide")
        return missing

    def origin(self, context: Mapping[str, Any]) -> str:
        state = parse_state(context.get("currentState"))
        return state.value if state is not None else "UNKNOWN"

    def build_context(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        delete_config = self.config_of(context)
        return {
            "deleteConfig": context.get("deleteConfig"),
            "confirmToken": context.get("confirmToken"),
            "deleteReason": delete_config.get("reason") or "manual",
            "backupRequested": enabled(delete_config, "createBackup"),
            "forceDelete": delete_config.get("forceDelete") is True,
            "removeDependencies": enabled(delete_config, "removeDependencies"),
        }

    def success_actions(self, flags: Mapping[str, Any]) -> List[str]:
        actions = []
        if flags.get("backupRequested"):
            actions += ["create-final-project-backup", "archive-project-history"]
        actions += [
            "destroy-all-project-resources",
            "remove-project-from-registries",
            "release-all-network-resources",
        ]
        if flags.get("removeDependencies"):
            actions += ["cleanup-project-dependencies", "notify-dependent-projects"]
        actions += ["mark-project-destroyed", "create-deletion-audit-log"]
        return actions

    def failure_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return [
            "alert-deletion-failure",
            "analyze-deletion-failure-cause",
            "maintain-previous-state",
            "cleanup-partial-deletion-attempts",
        ]


_delete = DeleteTransition()


def validate_delete(from_state: str, to_state: str, context: Mapping[str, Any]) -> TransitionValidation:
    return _delete.validate(from_state, to_state, context)


def execute_delete(project_id: str, context: Mapping[str, Any],
                   from_state: Optional[str] = None, to_state: Optional[str] = None) -> TransitionResult:
    return _delete.execute(project_id, context, from_state, to_state)


def cleanup_delete(result: TransitionResult, project_id: str, now=None) -> CleanupPlan:
    return _delete.cleanup(result, project_id, now)
