"""BUILD workflow: DRAFT -> BUILT."""

from typing import Any, Dict, Mapping, Optional

from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import RecoveryPlan, WorkflowOutcome
from plm.workflows.engine import WorkflowEngine
from plm.workflows.recovery import RecoveryProfile

BUILD_RECOVERY = RecoveryProfile(
    validation_cleanup="cleanup-partial-build",
    filesystem_cleanup="cleanup-partial-artifacts",
    retry_tag="retry-build-with-backup-path",
    already_reached_tag="project-already-built",
    verification_tags=(
        "diagnose-build-state",
        "validate-build-artifacts",
        "force-cleanup-partial-build",
    ),
    generic_tags=("generic-build-cleanup",),
    restore_tags=("restore-draft-state",),
)


def build_build_context(
    project_id: str,
    build_config: Mapping[str, Any],
    current_state: Optional[LifecycleState] = None,
) -> Dict[str, Any]:
    return {
        "projectId": project_id,
        "projectPath": build_config.get("projectPath"),
        "buildConfig": {
            "target": build_config.get("target"),
            "environment": build_config.get("environment"),
            "optimization": build_config.get("optimization") is not False,
            "parallel": build_config.get("parallel") is not False,
            "cache": build_config.get("cache") is not False,
        },
    }


class BuildWorkflowEngine(WorkflowEngine):
    transition_name = TransitionName.BUILD
    config_name = "buildConfig"
    required_keys = ("target", "environment", "projectPath")
    identifier_key = "buildId"
    identifier_prefix = "build"
    recovery_profile = BUILD_RECOVERY

    def build_context(self, project_id, config, current_state=None):
        return build_build_context(project_id, config, current_state)


async def execute_build_workflow(
    project_id: str,
    build_config: Mapping[str, Any],
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> WorkflowOutcome:
    """
    Build a DRAFT project.

    Args:
        project_id: Project identifier
        build_config: {target, environment, projectPath, optimization?, parallel?, cache?}
        options: Per-call options
        **deps: Engine collaborators
    """
    return await BuildWorkflowEngine(**deps).run(project_id, build_config, options)


async def recover_build_workflow(
    project_id: str,
    build_config: Mapping[str, Any],
    error: BaseException,
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> RecoveryPlan:
    return await BuildWorkflowEngine(**deps).recover(project_id, build_config, error, options)


__all__ = [
    "BUILD_RECOVERY",
    "BuildWorkflowEngine",
    "build_build_context",
    "execute_build_workflow",
    "recover_build_workflow",
]
