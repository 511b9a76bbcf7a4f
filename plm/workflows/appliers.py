"""
Local TransitionApplier: lays a project's state markers down on disk.

The workflow engines use it whenever no applier is injected, so a run on the
local filesystem leaves the project in the state the detectors then verify.
Infra layers that provision real services inject their own applier.

Markers written per state (names from DetectionLayout):

    VOID     project directory removed
    DRAFT    directory + project.json
    BUILT    + one directory per service
    OFFLINE  + infra/, running marker removed
    ONLINE   + infra/.running
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from plm.config import DetectionLayout
from plm.state.exceptions import ValidationError
from plm.state.lifecycle import LifecycleState
from plm.state.models import TransitionResult


def write_markers(
    path: Path,
    state: LifecycleState,
    layout: Optional[DetectionLayout] = None,
    descriptor: Optional[Mapping[str, Any]] = None,
) -> Path:
    """
    Make `path` carry the filesystem markers of `state`.

    Existing markers of earlier states are kept; an existing project file is
    never overwritten.
    """
    layout = layout or DetectionLayout()
    if state == LifecycleState.VOID:
        shutil.rmtree(path, ignore_errors=True)
        return path

    path.mkdir(parents=True, exist_ok=True)
    project_file = path / layout.project_file
    if not project_file.exists():
        project_file.write_text(json.dumps(dict(descriptor or {}), indent=2), encoding="utf-8")
    if state == LifecycleState.DRAFT:
        return path

    for service in layout.service_dirs:
        (path / service).mkdir(exist_ok=True)
    if state == LifecycleState.BUILT:
        return path

    infra = path / layout.infra_dir
    infra.mkdir(exist_ok=True)
    running = infra / layout.running_marker
    if state == LifecycleState.ONLINE:
        running.write_text("running", encoding="utf-8")
    elif running.is_file():
        running.unlink()
    return path


class MarkerApplier:
    """
    TransitionApplier that writes the target state's markers under
    `config["projectPath"]`.

    Example:
        >>> applier = MarkerApplier()
        >>> await applier.apply(result, {"projectPath": "output/p1"})
    """

    def __init__(self, layout: Optional[DetectionLayout] = None) -> None:
        self.layout = layout or DetectionLayout()
        self.logger = logging.getLogger(__name__)

    async def apply(self, result: TransitionResult, config: Mapping[str, Any]) -> None:
        path = config.get("projectPath")
        if not path or not isinstance(path, str):
            raise ValidationError("ValidationError: projectPath requis string")
        await asyncio.to_thread(
            write_markers, Path(path), result.to_state, self.layout, self._descriptor(result)
        )
        self.logger.debug(f"Applied {result.to_state.value} markers to {path}")

    def _descriptor(self, result: TransitionResult) -> Dict[str, Any]:
        context = result.transition_data.context
        descriptor: Dict[str, Any] = {"projectId": result.transition_data.project_id}
        if context.get("projectName"):
            descriptor["name"] = context["projectName"]
        if context.get("templateId"):
            descriptor["templateId"] = context["templateId"]
        return descriptor


__all__ = ["MarkerApplier", "write_markers"]
