"""Workflow log entries and the append-only sinks that persist them."""

from plm.events.models import LogEntry, LogLevel
from plm.events.sink import FileLogSink, LogSink, MemoryLogSink

__all__ = ["FileLogSink", "LogEntry", "LogLevel", "LogSink", "MemoryLogSink"]
