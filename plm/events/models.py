"""
Workflow log entry model.

One LogEntry is emitted per workflow event and serialized to JSONL, one
entry per line, by the append-only sinks in plm.events.sink.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_serializer


class LogLevel(str, Enum):
    """Severity levels of workflow log entries."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogEntry(BaseModel):
    """
    Structured record of one workflow event.

    Example:
        entry = LogEntry(
            engine="build-workflow",
            event="workflow-start",
            level=LogLevel.INFO,
            message="Workflow build démarré",
            project_id="p1",
            data={"buildId": "build-p1-1718000000000-3fa2"},
        )
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    engine: str = Field(..., description="Emitting engine, e.g. 'delete-workflow'")
    event: str = Field(..., description="Event vocabulary entry")
    level: LogLevel = Field(default=LogLevel.DEBUG)
    data: Dict[str, Any] = Field(default_factory=dict, description="Sanitized payload")
    message: str = ""
    project_id: Optional[str] = None
    correlation_id: Optional[str] = None

    model_config = {"use_enum_values": True}

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime):
        return value.isoformat()

    def to_jsonl(self) -> str:
        """Serialize to a single JSON line (no newline)."""
        return self.model_dump_json()

    @classmethod
    def from_jsonl(cls, line: str) -> "LogEntry":
        return cls.model_validate_json(line)


__all__ = ["LogEntry", "LogLevel"]
