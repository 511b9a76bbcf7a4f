"""
State validators: structural-integrity checks of a project path.

A validator answers "is this path a well-formed X project?" rather than
"which state is this path in?". It probes the same markers as the matching
detector and reports each gap as a structured issue.
"""

import logging
from typing import Dict, Optional

from plm.config import DetectionLayout
from plm.state.detectors import DETECTOR_TYPES, StateDetector, require_path
from plm.state.filesystem import FilesystemProbe
from plm.state.lifecycle import DETECTION_ORDER, LifecycleState
from plm.state.models import StateValidation


class StateValidator:
    """
    Validates a project path against one lifecycle state.

    The validator is stateless and can be reused across projects.

    Example:
        >>> validator = StateValidator.for_state(LifecycleState.BUILT)
        >>> report = await validator.validate("output/p1")
        >>> report.issues
        ['expected service:admin']
    """

    def __init__(self, detector: StateDetector) -> None:
        self.detector = detector
        self.logger = logging.getLogger(__name__)

    @classmethod
    def for_state(
        cls,
        state: LifecycleState,
        filesystem: Optional[FilesystemProbe] = None,
        layout: Optional[DetectionLayout] = None,
    ) -> "StateValidator":
        return cls(DETECTOR_TYPES[state](filesystem=filesystem, layout=layout))

    @property
    def state(self) -> LifecycleState:
        return self.detector.state

    async def validate(self, path: str) -> StateValidation:
        """
        Check `path` against this validator's state.

        Returns:
            StateValidation with one issue per missing or unexpected marker

        Raises:
            ValidationError: if path is empty or not a string
        """
        root = require_path(path)
        inspection = await self.detector.inspect(root)

        if not inspection.anchor_present:
            issues = [f"expected {inspection.anchor}"]
        else:
            issues = [f"expected {label}" for label in inspection.missing]
        issues.extend(f"unexpected {label}" for label in inspection.superseded_by)

        report = StateValidation(
            valid=not issues,
            confidence=inspection.confidence,
            issues=issues,
        )
        if issues:
            self.logger.info(
                f"{self.state.value} validation of {root} found {len(issues)} issue(s)"
            )
        return report


def build_validators(
    filesystem: Optional[FilesystemProbe] = None,
    layout: Optional[DetectionLayout] = None,
) -> Dict[LifecycleState, StateValidator]:
    return {
        state: StateValidator.for_state(state, filesystem, layout)
        for state in DETECTION_ORDER
    }


async def validate_void_state(path: str, filesystem: Optional[FilesystemProbe] = None) -> StateValidation:
    return await StateValidator.for_state(LifecycleState.VOID, filesystem).validate(path)


async def validate_draft_state(path: str, filesystem: Optional[FilesystemProbe] = None) -> StateValidation:
    return await StateValidator.for_state(LifecycleState.DRAFT, filesystem).validate(path)


async def validate_built_state(path: str, filesystem: Optional[FilesystemProbe] = None) -> StateValidation:
    return await StateValidator.for_state(LifecycleState.BUILT, filesystem).validate(path)


async def validate_offline_state(path: str, filesystem: Optional[FilesystemProbe] = None) -> StateValidation:
    return await StateValidator.for_state(LifecycleState.OFFLINE, filesystem).validate(path)


async def validate_online_state(path: str, filesystem: Optional[FilesystemProbe] = None) -> StateValidation:
    return await StateValidator.for_state(LifecycleState.ONLINE, filesystem).validate(path)


__all__ = [
    "StateValidator",
    "build_validators",
    "validate_built_state",
    "validate_draft_state",
    "validate_offline_state",
    "validate_online_state",
    "validate_void_state",
]
