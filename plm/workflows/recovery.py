"""
Advisory recovery planning for failed workflows.

A RecoveryManager never performs remediation. It reads the FailureKind tag
carried by the error, re-probes the project where that helps, and returns a
RecoveryPlan of action tags for an operator or infra layer to act on.
Failures inside recovery itself degrade to a `recovery-failed` plan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from plm.config import DetectionThresholds
from plm.observability.metrics import increment_counter
from plm.state.detectors import StateDetector
from plm.state.exceptions import FailureKind, ValidationError, failure_kind, failure_reason
from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import RecoveryPlan
from plm.transitions.base import Transition
from plm.workflows.logging import WorkflowLogger

ContextBuilder = Callable[[str, Mapping[str, Any], Optional[LifecycleState]], Dict[str, Any]]


@dataclass(frozen=True, slots=True)
class RecoveryProfile:
    """
    Action vocabulary of one workflow family.

    Attributes:
        validation_cleanup: Tag following missing-requirements-N
        filesystem_cleanup: Tag following check-<family>-permissions
        retry_tag: Tag proposed when a filesystem or generation retry is allowed
        retry_limit: Retries allowed before no retry is proposed
        already_reached_tag: Tag emitted when the target state is already
            present; None skips the target probe
        verification_tags: Actions for a failed final-state verification
        generic_tags: Leading actions for an unclassified failure
        restore_tags: Trailing actions for an unclassified failure
        trailing_tags: Appended after the common cache invalidation
        restore_artifact: "backup" or "archive" when the family keeps one
        cache_tag: Overrides clear-<family>-cache
        recovery_log_tag: Appended unless recovery logs are disabled
    """

    validation_cleanup: str
    filesystem_cleanup: str = "cleanup-partial-files"
    retry_tag: Optional[str] = None
    retry_limit: int = 2
    already_reached_tag: Optional[str] = None
    verification_tags: Tuple[str, ...] = ()
    generic_tags: Tuple[str, ...] = ()
    restore_tags: Tuple[str, ...] = ()
    trailing_tags: Tuple[str, ...] = ()
    restore_artifact: Optional[str] = None
    cache_tag: Optional[str] = None
    recovery_log_tag: str = "log-recovery-details"


@dataclass(slots=True)
class PlanDraft:
    strategy: str
    actions: List[str]
    recovered: bool = False
    artifact_restored: bool = False


class RecoveryManager:
    """
    Computes RecoveryPlans for one workflow family.

    Depends only on the family's transition (for rollback cleanup), the
    state detectors, and a context builder; never on the workflow engine.

    Example:
        >>> plan = await manager.recover("p1", config, workflow_error)
        >>> plan.strategy
        'state-conflict'
    """

    def __init__(
        self,
        profile: RecoveryProfile,
        transition: Transition,
        workflow_logger: WorkflowLogger,
        detectors: Mapping[LifecycleState, StateDetector],
        context_builder: ContextBuilder,
        thresholds: Optional[DetectionThresholds] = None,
        config_name: str = "config",
    ) -> None:
        self.profile = profile
        self.transition = transition
        self.workflow_logger = workflow_logger
        self.detectors = detectors
        self.context_builder = context_builder
        self.thresholds = thresholds or DetectionThresholds()
        self.config_name = config_name
        self.family = transition.name.value.lower()
        self.logger = logging.getLogger(__name__)

        self._handlers: Dict[FailureKind, Callable[..., Any]] = {
            FailureKind.STATE_CONFLICT: self._state_conflict,
            FailureKind.VALIDATION_FAILURE: self._validation_failure,
            FailureKind.PROJECT_MISSING: self._project_missing,
            FailureKind.FILESYSTEM_FAILURE: self._filesystem_failure,
            FailureKind.TRANSITION_FAILURE: self._transition_failure,
            FailureKind.STATE_VERIFICATION_FAILURE: self._state_verification_failure,
            FailureKind.STEP_TIMEOUT: self._step_timeout,
            FailureKind.AUTHORIZATION_FAILURE: self._authorization_failure,
        }

    @property
    def name(self) -> TransitionName:
        return self.transition.name

    async def recover(
        self,
        project_id: str,
        config: Mapping[str, Any],
        error: BaseException,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RecoveryPlan:
        """
        Plan the remediation of `error`.

        Raises:
            ValidationError: if the arguments are malformed
        """
        if not project_id or not isinstance(project_id, str):
            raise ValidationError("ValidationError: projectId requis string")
        if not isinstance(config, Mapping):
            raise ValidationError(f"ValidationError: {self.config_name} requis object")
        if not isinstance(error, BaseException):
            raise ValidationError("ValidationError: error requis Error")
        options = options or {}

        kind = failure_kind(error)
        reason = failure_reason(error)
        try:
            self.workflow_logger.log(
                "recovery-start",
                {"projectId": project_id, "error": reason, "errorType": kind.value},
                options,
            )

            handler = self._handlers.get(kind)
            if handler is None:
                draft = await self._unknown_error(project_id, config, error, options)
            else:
                draft = await handler(project_id, config, error, options)

            draft.actions.extend(self._common_actions(options))
            plan = self._finish(draft)

            self.workflow_logger.log(
                "recovery-complete",
                {
                    "projectId": project_id,
                    "strategy": plan.strategy,
                    "recovered": plan.recovered,
                    "actions": len(plan.actions),
                },
                options,
            )
        except Exception as recovery_error:
            self.logger.error(
                f"Recovery of {self.name.value} for {project_id} failed: {recovery_error}",
                exc_info=True,
            )
            self.workflow_logger.log(
                "recovery-failed",
                {
                    "projectId": project_id,
                    "originalError": reason,
                    "recoveryError": str(recovery_error),
                },
                options,
            )
            plan = self._finish(PlanDraft("recovery-failed", ["recovery-error"]))

        increment_counter(
            "recovery_plans_total",
            labels={"transition": self.name.value, "strategy": plan.strategy},
        )
        return plan

    # -- strategies -------------------------------------------------------

    async def _state_conflict(self, project_id, config, error, options) -> PlanDraft:
        draft = PlanDraft(FailureKind.STATE_CONFLICT.value, [])
        path = config.get("projectPath")
        target = self.transition.to_state

        if self.profile.already_reached_tag:
            reached = await self.detectors[target].detect(path)
            if reached.meets(self.thresholds.verify):
                draft.actions += [
                    f"detect-current-state-{target.value.lower()}",
                    self.profile.already_reached_tag,
                ]
                draft.recovered = True
                return draft

        sources = self.transition.from_states
        if len(sources) == 1:
            (source,) = sources
            current = await self.detectors[source].detect(path)
            if current.state is not None:
                label = source.value.lower()
                draft.actions += [
                    f"detect-current-state-{label}-low-confidence",
                    f"force-{label}-state-validation",
                ]
                draft.recovered = True
                return draft

        draft.actions += ["detect-current-state-invalid", f"abort-{self.family}-wrong-state"]
        return draft

    async def _validation_failure(self, project_id, config, error, options) -> PlanDraft:
        requirements = getattr(error, "details", {}).get("requirements")
        if requirements is None:
            reason = failure_reason(error)
            _, _, listed = reason.partition("Validation échec: ")
            requirements = listed.split(", ")
        return PlanDraft(
            FailureKind.VALIDATION_FAILURE.value,
            [f"missing-requirements-{len(requirements)}", self.profile.validation_cleanup],
        )

    async def _project_missing(self, project_id, config, error, options) -> PlanDraft:
        return PlanDraft(
            FailureKind.PROJECT_MISSING.value,
            ["detect-project-deletion", f"abort-{self.family}-no-project"],
        )

    async def _filesystem_failure(self, project_id, config, error, options) -> PlanDraft:
        draft = PlanDraft(
            FailureKind.FILESYSTEM_FAILURE.value,
            [f"check-{self.family}-permissions", self.profile.filesystem_cleanup],
        )
        self._propose_retry(draft, options)
        return draft

    async def _transition_failure(self, project_id, config, error, options) -> PlanDraft:
        draft = PlanDraft(FailureKind.TRANSITION_FAILURE.value, [])
        context = self.context_builder(project_id, config, None)
        failed = self.transition.failed_result(project_id, context, failure_reason(error))
        cleanup = self.transition.cleanup(failed, project_id)
        draft.actions += [f"rollback-{action}" for action in cleanup.actions]

        artifact = self.profile.restore_artifact
        if artifact and config.get("createBackup") is not False:
            draft.actions += [
                f"restore-{artifact}-requested",
                f"{artifact}-restored-successfully",
            ]
            draft.artifact_restored = True
        return draft

    async def _state_verification_failure(self, project_id, config, error, options) -> PlanDraft:
        return PlanDraft(
            FailureKind.STATE_VERIFICATION_FAILURE.value,
            list(self.profile.verification_tags),
        )

    async def _step_timeout(self, project_id, config, error, options) -> PlanDraft:
        actions = [f"cancel-stalled-{self.family}-step"]
        sources = self.transition.from_states
        if len(sources) == 1:
            (source,) = sources
            actions.append(f"restore-{source.value.lower()}-state")
        return PlanDraft(FailureKind.STEP_TIMEOUT.value, actions)

    async def _authorization_failure(self, project_id, config, error, options) -> PlanDraft:
        return PlanDraft(
            FailureKind.AUTHORIZATION_FAILURE.value,
            [f"deny-{self.family}-request", "audit-authorization-failure"],
        )

    async def _unknown_error(self, project_id, config, error, options) -> PlanDraft:
        draft = PlanDraft(FailureKind.UNKNOWN_ERROR.value, list(self.profile.generic_tags))
        artifact = self.profile.restore_artifact
        if artifact and config.get("createBackup") is not False:
            draft.actions.append(f"attempt-{artifact}-restore")
            draft.artifact_restored = True
        draft.actions.extend(self.profile.restore_tags)
        return draft

    # -- helpers ----------------------------------------------------------

    def _propose_retry(self, draft: PlanDraft, options: Mapping[str, Any]) -> None:
        if not self.profile.retry_tag:
            return
        retry_count = int(options.get("retry_count") or 0)
        if options.get("allow_retry") is not False and retry_count < self.profile.retry_limit:
            draft.actions += [self.profile.retry_tag, "retry-scheduled"]

    def _common_actions(self, options: Mapping[str, Any]) -> List[str]:
        actions = [
            self.profile.cache_tag or f"clear-{self.family}-cache",
            "invalidate-state-cache",
            *self.profile.trailing_tags,
        ]
        if options.get("enable_recovery_logs") is not False:
            actions.append(self.profile.recovery_log_tag)
        return actions

    def _finish(self, draft: PlanDraft) -> RecoveryPlan:
        plan = RecoveryPlan(
            recovered=draft.recovered,
            strategy=draft.strategy,
            actions=draft.actions,
        )
        if self.profile.restore_artifact == "backup":
            plan.backup_restored = draft.artifact_restored
        elif self.profile.restore_artifact == "archive":
            plan.archive_restored = draft.artifact_restored
        return plan


__all__ = ["ContextBuilder", "PlanDraft", "RecoveryManager", "RecoveryProfile"]
