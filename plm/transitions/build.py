"""BUILD: DRAFT -> BUILT. Generates the service directories from the draft."""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from plm.state.lifecycle import TransitionName
from plm.state.models import CleanupPlan, TransitionResult, TransitionValidation
from plm.transitions.base import Transition, enabled, truthy


class BuildTransition(Transition):
    name = TransitionName.BUILD
    config_key = "buildConfig"
    required_fields = truthy("projectId", "buildConfig", "projectPath")
    config_fields = truthy("target", "environment")
    age_threshold = timedelta(minutes=30)
    old_logs_tag = "cleanup-old-build-logs"
    trailing_tags = ("optimize-disk-space",)

    def build_context(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "buildConfig": context.get("buildConfig"),
            "projectPath": context.get("projectPath"),
            "buildType": context.get("buildType") or "production",
            "optimization": enabled(context, "optimization"),
        }

    def success_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return [
            "cleanup-temp-source-files",
            "compress-build-artifacts",
            "archive-build-logs",
            "finalize-build",
        ]

    def failure_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return [
            "cleanup-partial-build-artifacts",
            "clear-compilation-cache",
            "rollback-state-to-draft",
        ]


_build = BuildTransition()


def validate_build(from_state: str, to_state: str, context: Mapping[str, Any]) -> TransitionValidation:
    return _build.validate(from_state, to_state, context)


def execute_build(project_id: str, context: Mapping[str, Any],
                  from_state: Optional[str] = None, to_state: Optional[str] = None) -> TransitionResult:
    return _build.execute(project_id, context, from_state, to_state)


def cleanup_build(result: TransitionResult, project_id: str, now=None) -> CleanupPlan:
    return _build.cleanup(result, project_id, now)
