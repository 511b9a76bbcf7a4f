"""
Structured, sanitized event logging for workflow engines.

Each engine owns one WorkflowLogger. Every event goes to structlog (bound to
the run's correlation ID) and, unless disabled per call, to an append-only
LogSink. A sink that fails never fails the workflow.

Event vocabulary:
    workflow-start, validation-start, validation-failed,
    filesystem-checks-start, backup-creation, archive-creation,
    transition-start, verification-start, workflow-success, workflow-error,
    recovery-start, recovery-complete, recovery-failed
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from pydantic import BaseModel

from plm.events.models import LogEntry, LogLevel
from plm.events.sink import LogSink
from plm.observability.logging import get_correlation_id, get_logger
from plm.observability.metrics import increment_counter
from plm.state.exceptions import ValidationError
from plm.state.lifecycle import TransitionName
from plm.state.models import LogReceipt, utcnow

SENSITIVE_KEYS: FrozenSet[str] = frozenset(
    {"password", "token", "secret", "apiKey", "access_token"}
)
MAX_PATH_LENGTH = 100

_STRUCTLOG_METHODS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
    LogLevel.CRITICAL: "critical",
}


class WorkflowLogger:
    """
    Event logger for one workflow family.

    Args:
        transition: Family this logger reports for
        sink: Optional append-only sink for LogEntry records
        redact_confirm_token: Replace `confirmToken` values with a presence
            flag instead of logging them
        critical_events: Events logged at CRITICAL for this family

    Example:
        >>> log = WorkflowLogger(TransitionName.BUILD, sink=MemoryLogSink())
        >>> log.log("workflow-start", {"projectId": "p1"}).log_level
        'INFO'
    """

    def __init__(
        self,
        transition: TransitionName,
        sink: Optional[LogSink] = None,
        redact_confirm_token: bool = False,
        critical_events: Iterable[str] = (),
    ) -> None:
        self.transition = transition
        self.family = transition.value.lower()
        self.engine = f"{self.family}-workflow"
        self.sink = sink
        self.redact_confirm_token = redact_confirm_token
        self.logger = get_logger(f"plm.workflows.{self.family}")
        self._stdlib_logger = logging.getLogger(__name__)

        self._levels: Dict[str, LogLevel] = {}
        for event in ("validation-failed", "filesystem-checks-retry", f"{self.family}-warning"):
            self._levels[event] = LogLevel.WARN
        for event in ("workflow-start", "workflow-success", "backup-creation", "archive-creation"):
            self._levels[event] = LogLevel.INFO
        for event in ("workflow-error", "recovery-triggered", "recovery-failed", f"{self.family}-failed"):
            self._levels[event] = LogLevel.ERROR
        for event in critical_events:
            self._levels[event] = LogLevel.CRITICAL

    def level_for(self, event_type: str) -> LogLevel:
        return self._levels.get(event_type, LogLevel.DEBUG)

    def log(
        self,
        event_type: str,
        data: Mapping[str, Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> LogReceipt:
        """
        Emit one workflow event.

        Raises:
            ValidationError: if event_type is empty or data is not a mapping
        """
        if not event_type or not isinstance(event_type, str):
            raise ValidationError("ValidationError: eventType requis string")
        if not isinstance(data, Mapping):
            raise ValidationError("ValidationError: data requis object")
        options = options or {}

        level = self.level_for(event_type)
        sanitized = self.sanitize(data)
        project_id = data.get("projectId")
        entry = LogEntry(
            timestamp=utcnow(),
            engine=self.engine,
            event=event_type,
            level=level,
            data=sanitized,
            message=self._message(event_type),
            project_id=str(project_id) if project_id else None,
            correlation_id=get_correlation_id(),
        )

        getattr(self.logger, _STRUCTLOG_METHODS[level])(
            event_type,
            engine=self.engine,
            project_id=entry.project_id,
            data=sanitized,
        )

        if self.sink is not None and options.get("enable_file_logging") is not False:
            self._append(entry)

        return LogReceipt(logged=True, timestamp=entry.timestamp, log_level=level.value)

    def sanitize(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a JSON-safe copy of `data` with secrets removed at any depth."""
        return self._clean(data)

    def _clean(self, value: Any, key: Optional[str] = None) -> Any:
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        if isinstance(value, Mapping):
            cleaned = {}
            for k, v in value.items():
                k = str(k)
                if k in SENSITIVE_KEYS:
                    continue
                if k == "confirmToken" and self.redact_confirm_token:
                    cleaned[k] = "[REDACTED]" if v else "[MISSING]"
                    continue
                cleaned[k] = self._clean(v, k)
            return cleaned
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self._clean(item) for item in value]
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, str):
            if key == "projectPath" and len(value) > MAX_PATH_LENGTH:
                return value[:MAX_PATH_LENGTH] + "..."
            return value
        if value is None or isinstance(value, (bool, int, float)):
            return value
        return str(value)

    def _append(self, entry: LogEntry) -> None:
        try:
            self.sink.append(entry)  # type: ignore[union-attr]
        except Exception as e:
            self._stdlib_logger.error(
                f"Log sink rejected {entry.event} from {self.engine}: {e}",
                exc_info=True,
            )
            increment_counter("log_sink_errors_total")

    def _message(self, event_type: str) -> str:
        name = self.transition.value
        messages = {
            "workflow-start": f"Workflow {self.family} démarré",
            "validation-start": f"Validation transition {name} en cours",
            "validation-failed": f"Validation transition {name} échouée",
            "filesystem-checks-start": "Vérifications filesystem démarrées",
            "backup-creation": "Création sauvegarde en cours",
            "archive-creation": "Création archive en cours",
            "transition-start": f"Transition {name} en cours",
            "verification-start": "Vérification état final",
            "workflow-success": f"Workflow {self.family} réussi",
            "workflow-error": f"Workflow {self.family} échoué",
            "recovery-start": f"Recovery {self.family} démarré",
            "recovery-complete": f"Recovery {self.family} terminé",
            "recovery-failed": f"Recovery {self.family} échoué",
        }
        return messages.get(event_type, f"Événement workflow: {event_type}")


__all__ = ["MAX_PATH_LENGTH", "SENSITIVE_KEYS", "WorkflowLogger"]
