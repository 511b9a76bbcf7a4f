"""Structured logging with correlation IDs for lifecycle workflows.

Every workflow run binds one correlation identifier at INIT; the processors
below stamp it onto each record so a single transition can be followed across
detector, validator, executor and recovery output.

Usage:
    from plm.observability import configure_logging, get_logger

    configure_logging(level="INFO", format="json")
    logger = get_logger(__name__)
    logger.info("transition_started", project_id="p1", transition="BUILD")
"""

import logging
import logging.handlers
import secrets
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

import structlog
from structlog.types import EventDict, Processor


correlation_id_var: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)


def add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Attach the active workflow correlation ID, if any."""
    correlation_id = correlation_id_var.get()
    if correlation_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def add_log_level(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    if method_name == "warn":
        method_name = "warning"
    event_dict["level"] = method_name
    return event_dict


def configure_logging(
    level: str = "INFO",
    format: str = "json",
    log_file: Optional[Path] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("json" or "console")
        log_file: Optional path for a rotating file handler
        max_bytes: Maximum size of log file before rotation
        backup_count: Number of backup files to keep
    """
    logging_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=str(log_file),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    # Clear existing handlers to allow reconfiguration
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging_level)
    for handler in handlers:
        handler.setLevel(logging_level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(handler)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def new_correlation_id(prefix: str = "wf") -> str:
    """Generate a correlation ID without binding it."""
    return f"{prefix}-{secrets.token_hex(6)}"


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation ID to the current context.

    Args:
        correlation_id: Correlation ID (auto-generated if None)

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = new_correlation_id()
    correlation_id_var.set(correlation_id)
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    correlation_id_var.set(None)
    structlog.contextvars.unbind_contextvars("correlation_id")


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


# Initialize with default configuration
try:
    configure_logging(level="INFO", format="console")
except Exception:
    logging.basicConfig(level=logging.INFO)


__all__ = [
    "configure_logging",
    "get_logger",
    "new_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "get_correlation_id",
]
