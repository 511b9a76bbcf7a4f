"""
Exception hierarchy for the lifecycle state machine.

Malformed caller input raises ValidationError and is never retried. Unmet
business rules are returned as data by the transition validators. Every
failure inside a workflow pipeline surfaces to the caller as a WorkflowError
carrying a FailureKind tag, which recovery switches on.
"""

from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    """Classification of a pipeline failure, set where the failure is raised."""

    STATE_CONFLICT = "state-conflict"
    VALIDATION_FAILURE = "validation-failure"
    PROJECT_MISSING = "project-missing"
    FILESYSTEM_FAILURE = "filesystem-failure"
    GENERATION_FAILURE = "generation-failure"
    TRANSITION_FAILURE = "transition-failure"
    STATE_VERIFICATION_FAILURE = "state-verification-failure"
    STATE_DETECTION_FAILURE = "state-detection-failure"
    STEP_TIMEOUT = "step-timeout"
    AUTHORIZATION_FAILURE = "authorization-failure"
    UNKNOWN_ERROR = "unknown-error"


class LifecycleError(Exception):
    """
    Base exception for all lifecycle errors.

    Allows callers to catch every error raised by this package with a single
    except clause.
    """

    pass


class ValidationError(LifecycleError):
    """
    Raised when a caller passes malformed input.

    This is a programmer error: a wrong edge handed to a transition
    validator, an empty path handed to a detector, a workflow config missing
    a required key. It is raised before any work starts and is never wrapped
    into a WorkflowError.

    Example:
        >>> raise ValidationError("ValidationError: projectId requis string")
    """

    pass


class StateError(LifecycleError):
    """
    Raised by the rules layer on empty arguments or a state mismatch.

    Attributes:
        state: The state the caller claimed the project was in
        operation: The operation being checked
    """

    def __init__(
        self,
        message: str,
        state: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.state = state
        self.operation = operation


class StepError(LifecycleError):
    """
    Raised by a pipeline step to signal a classified failure.

    The workflow engine converts it into a WorkflowError with the same reason
    and kind.

    Attributes:
        reason: Human-readable failure reason
        kind: FailureKind tag used by recovery
        details: Structured context, e.g. the unmet requirements
    """

    def __init__(
        self,
        reason: str,
        kind: FailureKind,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(reason)
        self.reason = reason
        self.kind = kind
        self.details = details or {}


class WorkflowError(LifecycleError):
    """
    Raised when a workflow pipeline fails at any step.

    The message is always prefixed with ``WorkflowError: `` so callers that
    only see the string form can still tell it apart.

    Attributes:
        reason: Failure reason without the prefix
        kind: FailureKind tag of the failing step
        step: Name of the step that failed
        metrics: WorkflowMetrics recorded up to the failure
        recovery: Advisory RecoveryPlan computed for the failure
        details: Structured context copied from the failing step

    Example:
        >>> error = WorkflowError("Projet n'est pas en état VOID", FailureKind.STATE_CONFLICT)
        >>> str(error)
        "WorkflowError: Projet n'est pas en état VOID"
    """

    def __init__(
        self,
        reason: str,
        kind: FailureKind = FailureKind.UNKNOWN_ERROR,
        step: Optional[str] = None,
        metrics: Any = None,
        recovery: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"WorkflowError: {reason}")
        self.reason = reason
        self.kind = kind
        self.step = step
        self.metrics = metrics
        self.recovery = recovery
        self.details = details or {}


def failure_kind(error: BaseException) -> FailureKind:
    """Return the FailureKind carried by `error`, defaulting to UNKNOWN_ERROR."""
    kind = getattr(error, "kind", None)
    if isinstance(kind, FailureKind):
        return kind
    return FailureKind.UNKNOWN_ERROR


def failure_reason(error: BaseException) -> str:
    """Return the reason text of `error` without any WorkflowError prefix."""
    reason = getattr(error, "reason", None)
    if isinstance(reason, str):
        return reason
    return str(error)
