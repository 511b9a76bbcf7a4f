"""
Configuration loading for the Project Lifecycle Manager.

Configuration values are resolved using the following precedence:

1. Explicit arguments passed to `load_config`
2. Environment variables (e.g., PLM_PROJECTS_ROOT)
3. `plm.toml` if present in the working directory
4. Built-in defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import tomllib
from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "ConfigError",
    "DetectionLayout",
    "DetectionThresholds",
    "PLMConfig",
    "load_config",
]


DEFAULT_PROJECTS_ROOT = Path("output")
DEFAULT_TEMPLATES_ROOT = Path("templates")
DEFAULT_STATE_DB = Path(".plm/state/lifecycle.db")
DEFAULT_LOG_FILE = Path(".plm/logs/workflows.jsonl")


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""


class DetectionLayout(BaseModel):
    """Filesystem markers the state detectors look for inside a project."""

    project_file: str = Field("project.json", min_length=1)
    service_dirs: Tuple[str, ...] = Field(
        ("front", "api", "back", "database", "admin"),
        description="Generated service directories expected once BUILT",
    )
    infra_dir: str = Field("infra", min_length=1)
    running_marker: str = Field(".running", min_length=1)

    model_config = ConfigDict(frozen=True)

    @field_validator("service_dirs", mode="before")
    @classmethod
    def _coerce_services(cls, value: Any) -> Tuple[str, ...]:
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        services = tuple(value)
        if not services:
            raise ValueError("service_dirs must name at least one directory")
        return services


class DetectionThresholds(BaseModel):
    """Minimum detector confidence (0-100) accepted by the workflow engines."""

    create_source: int = Field(80, ge=0, le=100)
    source: int = Field(70, ge=0, le=100)
    verify: int = Field(70, ge=0, le=100)


class PLMConfig(BaseModel):
    """Top-level configuration object shared across subsystems."""

    projects_root: Path = Field(DEFAULT_PROJECTS_ROOT, description="Generated projects root")
    templates_root: Path = Field(DEFAULT_TEMPLATES_ROOT, description="Project templates root")
    state_db: Path = Field(DEFAULT_STATE_DB, description="SQLite lifecycle store path")
    log_file: Optional[Path] = Field(DEFAULT_LOG_FILE, description="Workflow JSONL log path")
    log_level: str = Field("INFO", description="Root log level")
    log_format: str = Field("console", description="Log renderer (json or console)")
    step_timeout_seconds: float = Field(30.0, gt=0, description="Per-step timeout")
    lease_timeout_seconds: float = Field(10.0, gt=0, description="Project lease wait")
    layout: DetectionLayout = Field(default_factory=DetectionLayout)
    thresholds: DetectionThresholds = Field(default_factory=DetectionThresholds)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("projects_root", "templates_root", "state_db", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value) if not isinstance(value, Path) else value

    @field_validator("log_format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        if value not in {"json", "console"}:
            raise ValueError(f"Unknown log format: {value}")
        return value


def load_config(config_path: Optional[Path | str] = None) -> PLMConfig:
    """
    Load PLM configuration from file/environment/defaults.

    Args:
        config_path: Optional explicit path to a `plm.toml` file.

    Returns:
        PLMConfig populated with the resolved values.

    Raises:
        ConfigError: if the provided config path does not exist or parsing fails.
    """

    raw_data = _load_toml_data(config_path)
    paths = raw_data.get("paths", {})
    logging_data = raw_data.get("logging", {})
    workflow_data = raw_data.get("workflow", {})

    log_file_value = _env_or_value(
        "PLM_LOG_FILE", logging_data.get("file"), str(DEFAULT_LOG_FILE)
    )

    try:
        return PLMConfig(
            projects_root=_env_or_value(
                "PLM_PROJECTS_ROOT", paths.get("projects_root"), DEFAULT_PROJECTS_ROOT
            ),
            templates_root=_env_or_value(
                "PLM_TEMPLATES_ROOT", paths.get("templates_root"), DEFAULT_TEMPLATES_ROOT
            ),
            state_db=_env_or_value("PLM_STATE_DB", paths.get("state_db"), DEFAULT_STATE_DB),
            log_file=Path(log_file_value) if log_file_value else None,
            log_level=_env_or_value("PLM_LOG_LEVEL", logging_data.get("level"), "INFO"),
            log_format=_env_or_value("PLM_LOG_FORMAT", logging_data.get("format"), "console"),
            step_timeout_seconds=float(
                _env_or_value(
                    "PLM_STEP_TIMEOUT_SECONDS", workflow_data.get("step_timeout_seconds"), 30.0
                )
            ),
            lease_timeout_seconds=float(
                _env_or_value(
                    "PLM_LEASE_TIMEOUT_SECONDS", workflow_data.get("lease_timeout_seconds"), 10.0
                )
            ),
            layout=DetectionLayout(**raw_data.get("layout", {})),
            thresholds=DetectionThresholds(**raw_data.get("thresholds", {})),
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def _load_toml_data(config_path: Optional[Path | str]) -> Dict[str, Any]:
    """Load data from a TOML file if one can be resolved."""

    resolved = _resolve_config_path(config_path)
    if resolved is None:
        return {}

    if not resolved.exists():
        raise ConfigError(f"Configuration file not found: {resolved}")

    try:
        with resolved.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed configuration file {resolved}: {exc}") from exc


def _resolve_config_path(config_path: Optional[Path | str]) -> Optional[Path]:
    """Resolve configuration path with environment fallback."""

    if config_path:
        return Path(config_path)

    env_path = os.getenv("PLM_CONFIG_FILE")
    if env_path:
        return Path(env_path)

    default_path = Path("plm.toml")
    return default_path if default_path.exists() else None


def _env_or_value(env_var: str, value: Any, default: Any) -> str:
    """Return environment variable value if set, otherwise fallback to provided/default values."""

    env_value = os.getenv(env_var)
    if env_value is not None:
        return env_value
    if value is not None:
        return str(value)
    return str(default)
