"""
Workflow engines, one per lifecycle transition.

Each family exposes `execute_<family>_workflow(project_id, config, options,
**deps)` returning a WorkflowOutcome or raising WorkflowError, and
`recover_<family>_workflow(project_id, config, error, options, **deps)`
returning an advisory RecoveryPlan.

Example:
    >>> from plm.workflows import execute_build_workflow
    >>> outcome = await execute_build_workflow(
    ...     "p1",
    ...     {"target": "web", "environment": "production", "projectPath": "output/p1"},
    ... )
    >>> outcome.final_state
    <LifecycleState.BUILT: 'BUILT'>
"""

from plm.workflows.appliers import MarkerApplier
from plm.workflows.build import BuildWorkflowEngine, execute_build_workflow, recover_build_workflow
from plm.workflows.create import CreateWorkflowEngine, execute_create_workflow, recover_create_workflow
from plm.workflows.delete import DeleteWorkflowEngine, execute_delete_workflow, recover_delete_workflow
from plm.workflows.deploy import DeployWorkflowEngine, execute_deploy_workflow, recover_deploy_workflow
from plm.workflows.engine import TransitionApplier, WorkflowEngine
from plm.workflows.logging import WorkflowLogger
from plm.workflows.recovery import RecoveryManager, RecoveryProfile
from plm.workflows.start import StartWorkflowEngine, execute_start_workflow, recover_start_workflow
from plm.workflows.update import UpdateWorkflowEngine, execute_update_workflow, recover_update_workflow

__all__ = [
    "BuildWorkflowEngine",
    "CreateWorkflowEngine",
    "DeleteWorkflowEngine",
    "DeployWorkflowEngine",
    "MarkerApplier",
    "RecoveryManager",
    "RecoveryProfile",
    "StartWorkflowEngine",
    "TransitionApplier",
    "UpdateWorkflowEngine",
    "WorkflowEngine",
    "WorkflowLogger",
    "execute_build_workflow",
    "execute_create_workflow",
    "execute_delete_workflow",
    "execute_deploy_workflow",
    "execute_start_workflow",
    "execute_update_workflow",
    "recover_build_workflow",
    "recover_create_workflow",
    "recover_delete_workflow",
    "recover_deploy_workflow",
    "recover_start_workflow",
    "recover_update_workflow",
]
