"""START workflow: OFFLINE -> ONLINE."""

from typing import Any, Dict, Mapping, Optional

from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import RecoveryPlan, WorkflowOutcome
from plm.workflows.engine import WorkflowEngine
from plm.workflows.recovery import RecoveryProfile

START_RECOVERY = RecoveryProfile(
    validation_cleanup="cleanup-partial-start",
    filesystem_cleanup="cleanup-partial-services",
    retry_tag="retry-start-with-backup-path",
    already_reached_tag="project-already-started",
    verification_tags=(
        "diagnose-start-state",
        "validate-service-health",
        "force-cleanup-partial-services",
    ),
    generic_tags=("generic-start-cleanup",),
    restore_tags=("restore-offline-state",),
)


def build_start_context(
    project_id: str,
    start_config: Mapping[str, Any],
    current_state: Optional[LifecycleState] = None,
) -> Dict[str, Any]:
    return {
        "projectId": project_id,
        "deploymentId": start_config.get("deploymentId"),
        "startConfig": {
            "healthCheck": start_config.get("healthCheck") or "/health",
            "timeout": start_config.get("timeout") or 30000,
            "readinessProbe": start_config.get("readinessProbe") or "/ready",
            "livenessProbe": start_config.get("livenessProbe") or "/alive",
            "gracefulStart": start_config.get("gracefulStart") is not False,
        },
    }


class StartWorkflowEngine(WorkflowEngine):
    transition_name = TransitionName.START
    config_name = "startConfig"
    required_keys = ("deploymentId", "projectPath")
    identifier_key = "serviceId"
    identifier_prefix = "service"
    recovery_profile = START_RECOVERY

    def build_context(self, project_id, config, current_state=None):
        return build_start_context(project_id, config, current_state)


async def execute_start_workflow(
    project_id: str,
    start_config: Mapping[str, Any],
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> WorkflowOutcome:
    return await StartWorkflowEngine(**deps).run(project_id, start_config, options)


async def recover_start_workflow(
    project_id: str,
    start_config: Mapping[str, Any],
    error: BaseException,
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> RecoveryPlan:
    return await StartWorkflowEngine(**deps).recover(project_id, start_config, error, options)


__all__ = [
    "START_RECOVERY",
    "StartWorkflowEngine",
    "build_start_context",
    "execute_start_workflow",
    "recover_start_workflow",
]
