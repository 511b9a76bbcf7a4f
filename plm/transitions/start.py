"""START: OFFLINE -> ONLINE."""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from plm.state.lifecycle import TransitionName
from plm.state.models import CleanupPlan, TransitionResult, TransitionValidation
from plm.transitions.base import Transition, defined, enabled, truthy


class StartTransition(Transition):
    name = TransitionName.START
    config_key = "startConfig"
    required_fields = truthy("projectId", "startConfig", "deploymentId")
    config_fields = (*truthy("healthCheck"), defined("timeout"), *truthy("readinessProbe"))
    age_threshold = timedelta(minutes=15)
    old_logs_tag = "cleanup-old-start-logs"
    trailing_tags = ("cleanup-startup-temp-files", "optimize-network-connections")

    def build_context(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        start_config = self.config_of(context)
        return {
            "startConfig": context.get("startConfig"),
            "deploymentId": context.get("deploymentId"),
            "startMode": context.get("startMode") or "standard",
            "gracefulStart": enabled(context, "gracefulStart"),
            "healthCheckEnabled": enabled(start_config, "healthCheck"),
        }

    def success_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return [
            "activate-full-monitoring",
            "register-load-balancer",
            "setup-health-alerts",
            "enable-metrics-collection",
            "mark-service-online",
            "notify-service-discovery",
        ]

    def failure_actions(self, flags: Mapping[str, Any]) -> List[str]:
        return [
            "stop-partially-started-services",
            "cleanup-temp-health-endpoints",
            "release-network-resources",
            "rollback-state-to-offline",
        ]


_start = StartTransition()


def validate_start(from_state: str, to_state: str, context: Mapping[str, Any]) -> TransitionValidation:
    return _start.validate(from_state, to_state, context)


def execute_start(project_id: str, context: Mapping[str, Any],
                  from_state: Optional[str] = None, to_state: Optional[str] = None) -> TransitionResult:
    return _start.execute(project_id, context, from_state, to_state)


def cleanup_start(result: TransitionResult, project_id: str, now=None) -> CleanupPlan:
    return _start.cleanup(result, project_id, now)
