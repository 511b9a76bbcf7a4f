"""DEPLOY: BUILT -> OFFLINE. Lays down the infra descriptors without starting anything."""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from plm.state.lifecycle import TransitionName
from plm.state.models import CleanupPlan, TransitionResult, TransitionValidation
from plm.transitions.base import Transition, enabled, truthy


class DeployTransition(Transition):
    name = TransitionName.DEPLOY
    config_key = "deployConfig"
    required_fields = truthy("projectId", "deployConfig", "projectPath")
    config_fields = truthy("target", "environment", "port")
    age_threshold = timedelta(minutes=60)
    old_logs_tag = "cleanup-old-deploy-logs"
    trailing_tags = ("cleanup-build-artifacts", "optimize-system-resources")

    def build_context(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "deployConfig": context.get("deployConfig"),
            "projectPath": context.get("projectPath"),
            "deployType": context.get("deployType") or "container",
            "autoStart": enabled(context, "autoStart"),
            "healthCheck": enabled(context, "healthCheck"),
        }

    def success_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return [
            "setup-deployment-monitoring",
            "create-health-endpoints",
            "setup-application-logging",
            "register-service-discovery",
            "finalize-deployment",
        ]

    def failure_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return [
            "cleanup-partial-containers",
            "cleanup-network-configs",
            "release-reserved-ports",
            "rollback-state-to-built",
        ]


_deploy = DeployTransition()


def validate_deploy(from_state: str, to_state: str, context: Mapping[str, Any]) -> TransitionValidation:
    return _deploy.validate(from_state, to_state, context)


def execute_deploy(project_id: str, context: Mapping[str, Any],
                   from_state: Optional[str] = None, to_state: Optional[str] = None) -> TransitionResult:
    return _deploy.execute(project_id, context, from_state, to_state)


def cleanup_deploy(result: TransitionResult, project_id: str, now=None) -> CleanupPlan:
    return _deploy.cleanup(result, project_id, now)
