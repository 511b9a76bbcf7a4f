"""DEPLOY workflow: BUILT -> OFFLINE."""

from typing import Any, Dict, Mapping, Optional

from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import RecoveryPlan, WorkflowOutcome
from plm.workflows.engine import WorkflowEngine
from plm.workflows.recovery import RecoveryProfile

DEFAULT_PORT = 8080

DEPLOY_RECOVERY = RecoveryProfile(
    validation_cleanup="cleanup-partial-deploy",
    filesystem_cleanup="cleanup-partial-containers",
    retry_tag="retry-deploy-with-backup-path",
    already_reached_tag="project-already-deployed",
    verification_tags=(
        "diagnose-deploy-state",
        "validate-deployment-integrity",
        "force-cleanup-partial-deployment",
    ),
    generic_tags=("generic-deploy-cleanup",),
    restore_tags=("restore-built-state",),
)


def build_deploy_context(
    project_id: str,
    deploy_config: Mapping[str, Any],
    current_state: Optional[LifecycleState] = None,
) -> Dict[str, Any]:
    return {
        "projectId": project_id,
        "projectPath": deploy_config.get("projectPath"),
        "deployConfig": {
            "target": deploy_config.get("target"),
            "environment": deploy_config.get("environment"),
            "port": deploy_config.get("port") or DEFAULT_PORT,
            "healthCheck": deploy_config.get("healthCheck") is not False,
            "replicas": deploy_config.get("replicas") or 1,
            "autoStart": deploy_config.get("autoStart") is not False,
        },
    }


class DeployWorkflowEngine(WorkflowEngine):
    transition_name = TransitionName.DEPLOY
    config_name = "deployConfig"
    required_keys = ("target", "environment", "projectPath")
    identifier_key = "deploymentId"
    identifier_prefix = "deploy"
    recovery_profile = DEPLOY_RECOVERY

    def build_context(self, project_id, config, current_state=None):
        return build_deploy_context(project_id, config, current_state)


async def execute_deploy_workflow(
    project_id: str,
    deploy_config: Mapping[str, Any],
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> WorkflowOutcome:
    return await DeployWorkflowEngine(**deps).run(project_id, deploy_config, options)


async def recover_deploy_workflow(
    project_id: str,
    deploy_config: Mapping[str, Any],
    error: BaseException,
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> RecoveryPlan:
    return await DeployWorkflowEngine(**deps).recover(project_id, deploy_config, error, options)


__all__ = [
    "DEPLOY_RECOVERY",
    "DeployWorkflowEngine",
    "build_deploy_context",
    "execute_deploy_workflow",
    "recover_deploy_workflow",
]
