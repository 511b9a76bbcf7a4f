"""
Global pytest configuration for the PLM test suite

This file provides shared fixtures and enforces Python version requirements.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pytest

from plm.config import DetectionLayout, PLMConfig
from plm.events.sink import MemoryLogSink
from plm.state.filesystem import LocalFilesystem
from plm.state.lifecycle import LifecycleState
from plm.state.models import TransitionResult
from plm.workflows import appliers
from plm.workflows.appliers import write_markers

# Add tests directory to sys.path to support imports from test helpers
_tests_dir = Path(__file__).parent
if str(_tests_dir) not in sys.path:
    sys.path.insert(0, str(_tests_dir))

_MIN_PY_VERSION = (3, 11)


def _verify_python_version() -> str:
    """Return the interpreter version string or exit if <3.11."""
    version_info = sys.version_info
    version_str = ".".join(map(str, version_info[:3]))
    if version_info < _MIN_PY_VERSION:
        pytest.exit(
            f"ERROR: pytest must run on Python 3.11+ (detected {version_str}).",
            returncode=1,
        )
    return version_str


def pytest_report_header(config: pytest.Config) -> str:
    version_str = _verify_python_version()
    return f"Python interpreter verified for pytest: {version_str}"


def materialize(path: Path, state: LifecycleState, layout: Optional[DetectionLayout] = None) -> Path:
    """Lay down the filesystem markers of `state` under `path`."""
    return write_markers(path, state, layout, {"name": "demo"})


class MarkerApplier(appliers.MarkerApplier):
    """Package applier that records what it applied and can be told to fail."""

    def __init__(self, layout: Optional[DetectionLayout] = None, fail: bool = False) -> None:
        super().__init__(layout)
        self.fail = fail
        self.applied: List[TransitionResult] = []

    async def apply(self, result: TransitionResult, config: Mapping[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("disk full")
        self.applied.append(result)
        await super().apply(result, config)


@pytest.fixture(scope="session", autouse=True)
def register_markers(pytestconfig: pytest.Config) -> None:
    """Register project markers to prevent unknown marker warnings."""
    markers = {
        "unit": "Unit tests that should execute quickly.",
        "integration": "Integration tests hitting multiple components.",
        "slow": "Slow or high-cost tests.",
    }
    for name, description in markers.items():
        pytestconfig.addinivalue_line("markers", f"{name}: {description}")


@pytest.fixture
def projects_root(tmp_path: Path) -> Path:
    root = tmp_path / "projects"
    root.mkdir()
    return root


@pytest.fixture
def templates_root(tmp_path: Path) -> Path:
    root = tmp_path / "templates"
    (root / "react").mkdir(parents=True)
    return root


@pytest.fixture
def project_path(projects_root: Path) -> Path:
    return projects_root / "p1"


@pytest.fixture
def settings(projects_root: Path, templates_root: Path) -> PLMConfig:
    return PLMConfig(
        projects_root=projects_root,
        templates_root=templates_root,
        log_file=None,
        step_timeout_seconds=5,
        lease_timeout_seconds=1,
    )


@pytest.fixture
def filesystem(projects_root: Path, templates_root: Path) -> LocalFilesystem:
    return LocalFilesystem(projects_root, templates_root)


@pytest.fixture
def sink() -> MemoryLogSink:
    return MemoryLogSink()


@pytest.fixture
def applier() -> MarkerApplier:
    return MarkerApplier()


@pytest.fixture
def deps(settings, filesystem, sink, applier) -> Dict[str, Any]:
    """Engine collaborators shared by the workflow tests."""
    return {
        "settings": settings,
        "filesystem": filesystem,
        "sink": sink,
        "applier": applier,
    }
