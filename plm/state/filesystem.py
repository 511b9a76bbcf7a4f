"""
Read-only filesystem probes consumed by detectors and workflow prechecks.

The probes never create or remove anything. Blocking `os`/`pathlib` calls are
pushed to a worker thread so a slow mount cannot stall the event loop, and
the engines bound every step with a timeout.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol


@dataclass(frozen=True, slots=True)
class PathCheck:
    """Existence check of a named project or template."""

    exists: bool
    path: str


@dataclass(frozen=True, slots=True)
class OutputPathCheck:
    exists: bool
    writable: bool


class FilesystemProbe(Protocol):
    """Interface every filesystem collaborator must implement."""

    async def exists(self, path: str) -> bool:
        ...

    async def stat_type(self, path: str) -> Optional[str]:
        """Return 'directory', 'file' or None when the path is absent."""
        ...

    async def check_project_exists(self, project_id: str) -> PathCheck:
        ...

    async def check_output_path(self, path: str) -> OutputPathCheck:
        ...

    async def check_template_exists(self, template_id: str) -> PathCheck:
        ...


class LocalFilesystem:
    """
    FilesystemProbe over the local disk.

    Projects live under `projects_root/<project_id>` and templates under
    `templates_root/<template_id>`.

    Example:
        >>> fs = LocalFilesystem(projects_root="output", templates_root="templates")
        >>> check = await fs.check_template_exists("react")
    """

    def __init__(
        self,
        projects_root: Path | str = "output",
        templates_root: Path | str = "templates",
    ) -> None:
        self.projects_root = Path(projects_root)
        self.templates_root = Path(templates_root)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.exists, path)

    async def stat_type(self, path: str) -> Optional[str]:
        return await asyncio.to_thread(_stat_type, path)

    async def check_project_exists(self, project_id: str) -> PathCheck:
        project_path = self.projects_root / project_id
        found = await asyncio.to_thread(project_path.is_dir)
        return PathCheck(exists=found, path=str(project_path))

    async def check_output_path(self, path: str) -> OutputPathCheck:
        return await asyncio.to_thread(_output_path_check, path)

    async def check_template_exists(self, template_id: str) -> PathCheck:
        template_path = self.templates_root / template_id
        found = await asyncio.to_thread(template_path.is_dir)
        return PathCheck(exists=found, path=str(template_path))


def _stat_type(path: str) -> Optional[str]:
    if os.path.isdir(path):
        return "directory"
    if os.path.isfile(path):
        return "file"
    return None


def _output_path_check(path: str) -> OutputPathCheck:
    # A path that does not exist yet is writable when its nearest existing
    # ancestor is.
    target = Path(path).absolute()
    if target.exists():
        return OutputPathCheck(exists=True, writable=os.access(target, os.W_OK))
    for parent in target.parents:
        if parent.exists():
            return OutputPathCheck(
                exists=False,
                writable=parent.is_dir() and os.access(parent, os.W_OK),
            )
    return OutputPathCheck(exists=False, writable=False)


__all__ = ["FilesystemProbe", "LocalFilesystem", "OutputPathCheck", "PathCheck"]
