"""
Data models for lifecycle detection, transitions and workflows.

These pydantic models are created fresh per call. Durable state lives in
plm.state.store, never in these objects.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from plm.state.lifecycle import LifecycleState, TransitionName


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DetectionResult(BaseModel):
    """
    Outcome of one state detector probing a project path.

    `state` is set whenever the detector's anchor marker is present, even at
    low confidence; callers decide what confidence they accept.
    """

    state: Optional[LifecycleState] = Field(default=None, description="Detected state")
    confidence: int = Field(default=0, ge=0, le=100, description="Markers found, 0-100")
    evidence: List[str] = Field(default_factory=list, description="Markers observed")
    timestamp: datetime = Field(default_factory=utcnow)

    def meets(self, threshold: int) -> bool:
        """True when a state was detected with at least `threshold` confidence."""
        return self.state is not None and self.confidence >= threshold


class StateValidation(BaseModel):
    """Structural-integrity check of a project path against one state."""

    valid: bool
    confidence: int = Field(default=0, ge=0, le=100)
    issues: List[str] = Field(default_factory=list)


class OperationCheck(BaseModel):
    """Whether an operation is permitted in a state, with its constraints."""

    allowed: bool
    constraints: List[str] = Field(default_factory=list)


class TransitionValidation(BaseModel):
    """
    Result of a transition validator.

    `valid` only says the edge was right; `can_transition` says every
    requirement was met.
    """

    valid: bool = True
    can_transition: bool
    requirements: List[str] = Field(default_factory=list)


class TransitionData(BaseModel):
    project_id: str
    context: Dict[str, Any] = Field(default_factory=dict)


class TransitionResult(BaseModel):
    """The only artifact a transition execution produces."""

    success: bool = True
    from_state: str = Field(..., description="Origin state, UNKNOWN when undetermined")
    to_state: LifecycleState
    timestamp: datetime = Field(default_factory=utcnow)
    transition_data: TransitionData
    error: Optional[str] = None


class CleanupPlan(BaseModel):
    """Ordered action tags for an external executor."""

    cleaned: bool = True
    actions: List[str] = Field(default_factory=list)


class WorkflowStep(BaseModel):
    name: str
    duration_ms: float = Field(default=0.0, ge=0)
    success: bool
    error: Optional[str] = None


class WorkflowMetrics(BaseModel):
    """Timing and outcome of one workflow run, step by step."""

    transition: TransitionName
    correlation_id: str
    identifiers: Dict[str, Optional[str]] = Field(default_factory=dict)
    start_time: datetime = Field(default_factory=utcnow)
    steps: List[WorkflowStep] = Field(default_factory=list)
    duration_ms: float = 0.0
    success: bool = False
    error: Optional[str] = None

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]


class RecoveryPlan(BaseModel):
    """
    Advisory remediation for a failed workflow.

    The plan describes what an operator or infra layer should do; nothing in
    it has been performed.
    """

    recovered: bool = False
    strategy: str
    actions: List[str] = Field(default_factory=list)
    backup_restored: Optional[bool] = None
    archive_restored: Optional[bool] = None


class LogReceipt(BaseModel):
    logged: bool
    timestamp: datetime
    log_level: str


class WorkflowOutcome(BaseModel):
    """Successful result of a workflow engine run."""

    success: bool = True
    project_id: str
    transition_name: TransitionName
    final_state: LifecycleState
    original_state: Optional[LifecycleState] = None
    correlation_id: str
    identifiers: Dict[str, Optional[str]] = Field(default_factory=dict)
    transition: TransitionResult
    cleanup: CleanupPlan
    checks: Dict[str, Any] = Field(default_factory=dict)
    metrics: WorkflowMetrics
