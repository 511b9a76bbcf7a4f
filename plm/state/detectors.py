"""
State detectors: classify a project path from filesystem evidence.

Each detector owns an anchor marker. Without it the detector reports no
state at confidence 0. With it, confidence is the share of the detector's
markers found, scaled to 0-100, and halved when evidence of a later state is
also present so that polling detectors in lifecycle order never mistakes a
later state for an earlier one.

Marker layout (names configurable through DetectionLayout):

    VOID     path absent
    DRAFT    directory + project.json          superseded by any service dir
    BUILT    service dirs front/api/back/...   superseded by infra/
    OFFLINE  infra/                            superseded by infra/.running
    ONLINE   infra/.running + infra/
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Tuple, Type

from plm.config import DetectionLayout
from plm.state.exceptions import ValidationError
from plm.state.filesystem import FilesystemProbe, LocalFilesystem
from plm.state.lifecycle import DETECTION_ORDER, LifecycleState
from plm.state.models import DetectionResult


def require_path(path: object) -> str:
    """Return `path` if it is a non-blank string, else raise ValidationError."""
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("ValidationError: path requis string")
    return path


@dataclass(slots=True)
class MarkerInspection:
    """Raw marker probe shared by detectors and validators."""

    anchor: str
    anchor_present: bool
    markers: List[Tuple[str, bool]] = field(default_factory=list)
    superseded_by: List[str] = field(default_factory=list)

    @property
    def found(self) -> List[str]:
        return [label for label, present in self.markers if present]

    @property
    def missing(self) -> List[str]:
        return [label for label, present in self.markers if not present]

    @property
    def confidence(self) -> int:
        if not self.anchor_present or not self.markers:
            return 0
        score = round(len(self.found) * 100 / len(self.markers))
        if self.superseded_by:
            score //= 2
        return score


class StateDetector:
    """
    Base class for the five lifecycle state detectors.

    Subclasses set `state` and implement `inspect`.
    """

    state: ClassVar[LifecycleState]

    def __init__(
        self,
        filesystem: Optional[FilesystemProbe] = None,
        layout: Optional[DetectionLayout] = None,
    ) -> None:
        self.filesystem = filesystem or LocalFilesystem()
        self.layout = layout or DetectionLayout()
        self.logger = logging.getLogger(__name__)

    async def detect(self, path: str) -> DetectionResult:
        """
        Classify `path` against this detector's state.

        Raises:
            ValidationError: if path is empty or not a string
        """
        root = require_path(path)
        inspection = await self.inspect(root)
        if not inspection.anchor_present:
            result = DetectionResult(state=None, confidence=0, evidence=inspection.found)
        else:
            evidence = inspection.found + [
                f"superseded-by:{label}" for label in inspection.superseded_by
            ]
            result = DetectionResult(
                state=self.state,
                confidence=inspection.confidence,
                evidence=evidence,
            )
        self.logger.debug(
            f"{self.state.value} detection for {root}: "
            f"state={result.state} confidence={result.confidence}"
        )
        return result

    async def inspect(self, root: str) -> MarkerInspection:
        raise NotImplementedError

    async def _is_dir(self, *parts: str) -> bool:
        return await self.filesystem.stat_type(os.path.join(*parts)) == "directory"

    async def _is_file(self, *parts: str) -> bool:
        return await self.filesystem.stat_type(os.path.join(*parts)) == "file"

    async def _services_present(self, root: str) -> List[str]:
        present = []
        for service in self.layout.service_dirs:
            if await self._is_dir(root, service):
                present.append(service)
        return present


class VoidDetector(StateDetector):
    state = LifecycleState.VOID

    async def inspect(self, root: str) -> MarkerInspection:
        absent = not await self.filesystem.exists(root)
        return MarkerInspection(
            anchor="path-absent",
            anchor_present=absent,
            markers=[("path-absent", absent)],
            superseded_by=[] if absent else ["existing-path"],
        )


class DraftDetector(StateDetector):
    state = LifecycleState.DRAFT

    async def inspect(self, root: str) -> MarkerInspection:
        is_dir = await self._is_dir(root)
        if not is_dir:
            return MarkerInspection(anchor="directory", anchor_present=False)
        project_file = self.layout.project_file
        return MarkerInspection(
            anchor="directory",
            anchor_present=True,
            markers=[
                ("directory", True),
                (f"file:{project_file}", await self._is_file(root, project_file)),
            ],
            superseded_by=[f"service:{s}" for s in await self._services_present(root)],
        )


class BuiltDetector(StateDetector):
    state = LifecycleState.BUILT

    async def inspect(self, root: str) -> MarkerInspection:
        present = set(await self._services_present(root))
        markers = [(f"service:{s}", s in present) for s in self.layout.service_dirs]
        superseded = []
        if present and await self._is_dir(root, self.layout.infra_dir):
            superseded.append(f"infra:{self.layout.infra_dir}")
        return MarkerInspection(
            anchor="service",
            anchor_present=bool(present),
            markers=markers,
            superseded_by=superseded,
        )


class OfflineDetector(StateDetector):
    state = LifecycleState.OFFLINE

    async def inspect(self, root: str) -> MarkerInspection:
        infra = self.layout.infra_dir
        if not await self._is_dir(root, infra):
            return MarkerInspection(anchor=f"infra:{infra}", anchor_present=False)
        superseded = []
        if await self._is_file(root, infra, self.layout.running_marker):
            superseded.append(f"marker:{infra}/{self.layout.running_marker}")
        return MarkerInspection(
            anchor=f"infra:{infra}",
            anchor_present=True,
            markers=[(f"infra:{infra}", True)],
            superseded_by=superseded,
        )


class OnlineDetector(StateDetector):
    state = LifecycleState.ONLINE

    async def inspect(self, root: str) -> MarkerInspection:
        infra = self.layout.infra_dir
        marker = f"marker:{infra}/{self.layout.running_marker}"
        running = await self._is_file(root, infra, self.layout.running_marker)
        if not running:
            return MarkerInspection(anchor=marker, anchor_present=False)
        return MarkerInspection(
            anchor=marker,
            anchor_present=True,
            markers=[(marker, True), (f"infra:{infra}", await self._is_dir(root, infra))],
        )


DETECTOR_TYPES: Dict[LifecycleState, Type[StateDetector]] = {
    LifecycleState.VOID: VoidDetector,
    LifecycleState.DRAFT: DraftDetector,
    LifecycleState.BUILT: BuiltDetector,
    LifecycleState.OFFLINE: OfflineDetector,
    LifecycleState.ONLINE: OnlineDetector,
}


def build_detectors(
    filesystem: Optional[FilesystemProbe] = None,
    layout: Optional[DetectionLayout] = None,
) -> Dict[LifecycleState, StateDetector]:
    """Instantiate one detector per state, sharing probe and layout, in polling order."""
    filesystem = filesystem or LocalFilesystem()
    return {
        state: DETECTOR_TYPES[state](filesystem=filesystem, layout=layout)
        for state in DETECTION_ORDER
    }


async def detect_void_state(path: str, filesystem: Optional[FilesystemProbe] = None,
                            layout: Optional[DetectionLayout] = None) -> DetectionResult:
    return await VoidDetector(filesystem, layout).detect(path)


async def detect_draft_state(path: str, filesystem: Optional[FilesystemProbe] = None,
                             layout: Optional[DetectionLayout] = None) -> DetectionResult:
    return await DraftDetector(filesystem, layout).detect(path)


async def detect_built_state(path: str, filesystem: Optional[FilesystemProbe] = None,
                             layout: Optional[DetectionLayout] = None) -> DetectionResult:
    return await BuiltDetector(filesystem, layout).detect(path)


async def detect_offline_state(path: str, filesystem: Optional[FilesystemProbe] = None,
                               layout: Optional[DetectionLayout] = None) -> DetectionResult:
    return await OfflineDetector(filesystem, layout).detect(path)


async def detect_online_state(path: str, filesystem: Optional[FilesystemProbe] = None,
                              layout: Optional[DetectionLayout] = None) -> DetectionResult:
    return await OnlineDetector(filesystem, layout).detect(path)


__all__ = [
    "BuiltDetector",
    "DETECTOR_TYPES",
    "DraftDetector",
    "MarkerInspection",
    "OfflineDetector",
    "OnlineDetector",
    "StateDetector",
    "VoidDetector",
    "build_detectors",
    "detect_built_state",
    "detect_draft_state",
    "detect_offline_state",
    "detect_online_state",
    "detect_void_state",
    "require_path",
]
