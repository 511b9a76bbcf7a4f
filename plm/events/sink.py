"""
Append-only sinks for workflow log entries.

A sink write must never block or fail a workflow: every backend logs its own
failures and returns instead of raising.

File format (JSONL, one entry per line):
    {"timestamp":"...","engine":"create-workflow","event":"workflow-start",...}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Protocol

from plm.events.models import LogEntry
from plm.observability.metrics import increment_counter


class LogSink(Protocol):
    """Fire-and-forget destination for workflow log entries."""

    def append(self, entry: LogEntry) -> bool:
        """Persist `entry`; return False instead of raising on failure."""
        ...


class FileLogSink:
    """
    JSONL file sink.

    Usage:
        >>> sink = FileLogSink(".plm/logs/workflows.jsonl")
        >>> sink.append(entry)
        True
        >>> [e.event for e in sink.read_entries()]
        ['workflow-start']
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    def append(self, entry: LogEntry) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(entry.to_jsonl() + "\n")
                f.flush()
            return True
        except Exception as e:
            self.logger.error(
                f"Failed to write log entry {entry.event} to {self.path}: {e}",
                exc_info=True,
            )
            increment_counter("log_sink_errors_total")
            # Non-fatal: the workflow continues
            return False

    def read_entries(self) -> List[LogEntry]:
        """Read back every parseable entry, skipping malformed lines."""
        if not self.path.exists():
            return []

        entries = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    entries.append(LogEntry.from_jsonl(line.strip()))
                except ValueError as e:
                    self.logger.warning(
                        f"Failed to parse log entry on line {line_num} in {self.path}: {e}"
                    )
        return entries


class MemoryLogSink:
    """In-process sink, mostly for tests and embedding."""

    def __init__(self) -> None:
        self.entries: List[LogEntry] = []

    def append(self, entry: LogEntry) -> bool:
        self.entries.append(entry)
        return True

    def events(self) -> List[str]:
        return [entry.event for entry in self.entries]


__all__ = ["FileLogSink", "LogSink", "MemoryLogSink"]
