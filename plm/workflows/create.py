"""
CREATE workflow: VOID -> DRAFT.

Instantiates a project from a template. Unlike the other families the
precheck is about the template and the output location, not an existing
project.
"""

from typing import Any, Dict, Mapping, Optional

from plm.state.exceptions import FailureKind, StepError
from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import RecoveryPlan, WorkflowOutcome
from plm.workflows.engine import WorkflowEngine, WorkflowRun
from plm.workflows.recovery import PlanDraft, RecoveryManager, RecoveryProfile

CREATE_RECOVERY = RecoveryProfile(
    validation_cleanup="cleanup-partial-state",
    retry_tag="retry-generation",
    verification_tags=(
        "diagnose-final-state",
        "validate-filesystem-integrity",
        "force-cleanup-all",
    ),
    generic_tags=("generic-cleanup",),
    restore_tags=("reset-to-void-state",),
    cache_tag="clear-workflow-cache",
)


def build_create_context(
    project_id: str,
    template: Mapping[str, Any],
    current_state: Optional[LifecycleState] = None,
) -> Dict[str, Any]:
    return {
        "projectId": project_id,
        "templateId": template.get("templateId"),
        "projectName": template.get("projectName"),
        "projectPath": template.get("projectPath"),
    }


class CreateRecoveryManager(RecoveryManager):
    """CREATE treats an existing project as already created."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._handlers[FailureKind.GENERATION_FAILURE] = self._generation_failure

    async def _state_conflict(self, project_id, config, error, options) -> PlanDraft:
        current = await self.detectors[LifecycleState.VOID].detect(config.get("projectPath"))
        is_void = current.meets(self.thresholds.create_source)
        draft = PlanDraft(
            FailureKind.STATE_CONFLICT.value,
            [f"detect-current-state-{'void' if is_void else 'other'}"],
        )
        if not is_void:
            draft.actions.append("project-already-exists")
            draft.recovered = True
        return draft

    async def _generation_failure(self, project_id, config, error, options) -> PlanDraft:
        draft = PlanDraft(
            FailureKind.GENERATION_FAILURE.value,
            ["cleanup-partial-files", "clear-filesystem-cache"],
        )
        self._propose_retry(draft, options)
        return draft


class CreateWorkflowEngine(WorkflowEngine):
    transition_name = TransitionName.CREATE
    config_name = "template"
    required_keys = ("templateId", "projectPath", "projectName")
    identifier_key = "creationId"
    identifier_prefix = "create"
    recovery_profile = CREATE_RECOVERY
    recovery_class = CreateRecoveryManager

    def build_context(self, project_id, config, current_state=None):
        return build_create_context(project_id, config, current_state)

    def source_threshold(self) -> int:
        return self.settings.thresholds.create_source

    async def precheck(self, run: WorkflowRun) -> None:
        self.workflow_logger.log(
            "filesystem-checks-start",
            {
                "projectId": run.project_id,
                "templateId": run.config.get("templateId"),
                "projectPath": run.path,
            },
            run.options,
        )
        template_id = run.config["templateId"]
        template = await self.filesystem.check_template_exists(template_id)
        run.checks["templateExists"] = template.exists
        if not template.exists:
            raise StepError(f"Template {template_id} inexistant", FailureKind.GENERATION_FAILURE)

        project = await self.filesystem.check_project_exists(run.project_id)
        run.checks["projectExists"] = project.exists
        if project.exists:
            raise StepError(f"Projet {run.project_id} existe déjà", FailureKind.STATE_CONFLICT)

        output = await self.filesystem.check_output_path(run.path)
        run.checks["outputWritable"] = output.writable
        if not output.writable:
            raise StepError(
                f"Chemin de sortie {run.path} non accessible",
                FailureKind.FILESYSTEM_FAILURE,
            )


async def execute_create_workflow(
    project_id: str,
    template: Mapping[str, Any],
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> WorkflowOutcome:
    """
    Create `project_id` from `template`.

    Args:
        project_id: Project identifier
        template: {templateId, projectPath, projectName}
        options: Per-call options (step_timeout, enable_file_logging, ...)
        **deps: Engine collaborators (settings, filesystem, sink, ...)

    Example:
        >>> outcome = await execute_create_workflow(
        ...     "p1", {"templateId": "react", "projectPath": "/srv/p1", "projectName": "Demo"}
        ... )
        >>> outcome.final_state
        <LifecycleState.DRAFT: 'DRAFT'>
    """
    return await CreateWorkflowEngine(**deps).run(project_id, template, options)


async def recover_create_workflow(
    project_id: str,
    template: Mapping[str, Any],
    error: BaseException,
    options: Optional[Mapping[str, Any]] = None,
    **deps: Any,
) -> RecoveryPlan:
    return await CreateWorkflowEngine(**deps).recover(project_id, template, error, options)


__all__ = [
    "CREATE_RECOVERY",
    "CreateRecoveryManager",
    "CreateWorkflowEngine",
    "build_create_context",
    "execute_create_workflow",
    "recover_create_workflow",
]
