"""CREATE: VOID -> DRAFT. Instantiates a project descriptor from a template."""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from plm.state.lifecycle import TransitionName
from plm.state.models import CleanupPlan, TransitionResult, TransitionValidation
from plm.transitions.base import Transition, truthy


class CreateTransition(Transition):
    name = TransitionName.CREATE
    required_fields = truthy("templateId", "projectPath", "projectName")
    age_threshold = timedelta(minutes=5)
    old_logs_tag = "cleanup-old-transition-logs"

    def build_context(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "templateId": context.get("templateId"),
            "projectName": context.get("projectName"),
            "projectPath": context.get("projectPath"),
        }

    def success_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return ["finalize-transition"]

    def failure_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return ["rollback-state-to-void", "clear-temporary-references"]


_create = CreateTransition()


def validate_create(from_state: str, to_state: str, context: Mapping[str, Any]) -> TransitionValidation:
    return _create.validate(from_state, to_state, context)


def execute_create(project_id: str, context: Mapping[str, Any],
                   from_state: Optional[str] = None, to_state: Optional[str] = None) -> TransitionResult:
    return _create.execute(project_id, context, from_state, to_state)


def cleanup_create(result: TransitionResult, project_id: str, now=None) -> CleanupPlan:
    return _create.cleanup(result, project_id, now)
