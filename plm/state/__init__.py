"""
Lifecycle state layer: states and edges, filesystem detection, structural
validation, per-state operation rules, and the optional durable store.
"""

from plm.state.detectors import (
    BuiltDetector,
    DraftDetector,
    OfflineDetector,
    OnlineDetector,
    StateDetector,
    VoidDetector,
    build_detectors,
    detect_built_state,
    detect_draft_state,
    detect_offline_state,
    detect_online_state,
    detect_void_state,
)
from plm.state.exceptions import (
    FailureKind,
    LifecycleError,
    StateError,
    StepError,
    ValidationError,
    WorkflowError,
)
from plm.state.filesystem import FilesystemProbe, LocalFilesystem
from plm.state.leases import LeaseUnavailable, ProjectLeases
from plm.state.lifecycle import (
    ALL_STATES,
    DETECTION_ORDER,
    TRANSITION_EDGES,
    LifecycleState,
    TransitionName,
    can_transition,
    parse_state,
)
from plm.state.models import (
    CleanupPlan,
    DetectionResult,
    OperationCheck,
    RecoveryPlan,
    StateValidation,
    TransitionResult,
    TransitionValidation,
    WorkflowMetrics,
    WorkflowOutcome,
)
from plm.state.rules import STATE_RULES, StateRules, check_operation, rules_for
from plm.state.store import SQLiteStateStore, StateStore, TransitionRecord
from plm.state.validators import (
    StateValidator,
    build_validators,
    validate_built_state,
    validate_draft_state,
    validate_offline_state,
    validate_online_state,
    validate_void_state,
)

__all__ = [
    "ALL_STATES",
    "DETECTION_ORDER",
    "STATE_RULES",
    "TRANSITION_EDGES",
    "BuiltDetector",
    "CleanupPlan",
    "DetectionResult",
    "DraftDetector",
    "FailureKind",
    "FilesystemProbe",
    "LeaseUnavailable",
    "LifecycleError",
    "LifecycleState",
    "LocalFilesystem",
    "OfflineDetector",
    "OnlineDetector",
    "OperationCheck",
    "ProjectLeases",
    "RecoveryPlan",
    "SQLiteStateStore",
    "StateDetector",
    "StateError",
    "StateRules",
    "StateStore",
    "StateValidation",
    "StateValidator",
    "StepError",
    "TransitionName",
    "TransitionRecord",
    "TransitionResult",
    "TransitionValidation",
    "ValidationError",
    "VoidDetector",
    "WorkflowError",
    "WorkflowMetrics",
    "WorkflowOutcome",
    "build_detectors",
    "build_validators",
    "can_transition",
    "check_operation",
    "detect_built_state",
    "detect_draft_state",
    "detect_offline_state",
    "detect_online_state",
    "detect_void_state",
    "parse_state",
    "rules_for",
    "validate_built_state",
    "validate_draft_state",
    "validate_offline_state",
    "validate_online_state",
    "validate_void_state",
]
