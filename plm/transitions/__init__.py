"""
Lifecycle transitions: one validate/execute/cleanup triad per edge.
"""

from typing import Dict

from plm.state.lifecycle import TransitionName
from plm.transitions.base import Transition
from plm.transitions.build import BuildTransition, cleanup_build, execute_build, validate_build
from plm.transitions.create import CreateTransition, cleanup_create, execute_create, validate_create
from plm.transitions.delete import (
    DeleteTransition,
    cleanup_delete,
    execute_delete,
    expected_confirm_token,
    validate_delete,
)
from plm.transitions.deploy import DeployTransition, cleanup_deploy, execute_deploy, validate_deploy
from plm.transitions.start import StartTransition, cleanup_start, execute_start, validate_start
from plm.transitions.update import UpdateTransition, cleanup_update, execute_update, validate_update

TRANSITIONS: Dict[TransitionName, Transition] = {
    TransitionName.CREATE: CreateTransition(),
    TransitionName.BUILD: BuildTransition(),
    TransitionName.DEPLOY: DeployTransition(),
    TransitionName.START: StartTransition(),
    TransitionName.UPDATE: UpdateTransition(),
    TransitionName.DELETE: DeleteTransition(),
}

__all__ = [
    "TRANSITIONS",
    "Transition",
    "BuildTransition",
    "CreateTransition",
    "DeleteTransition",
    "DeployTransition",
    "StartTransition",
    "UpdateTransition",
    "expected_confirm_token",
    "validate_create",
    "execute_create",
    "cleanup_create",
    "validate_build",
    "execute_build",
    "cleanup_build",
    "validate_deploy",
    "execute_deploy",
    "cleanup_deploy",
    "validate_start",
    "execute_start",
    "cleanup_start",
    "validate_update",
    "execute_update",
    "cleanup_update",
    "validate_delete",
    "execute_delete",
    "cleanup_delete",
]
