"""Observability for lifecycle workflows.

Components:
    - logging: Structured logging with structlog and correlation IDs
    - metrics: Prometheus metrics export
"""

from plm.observability.logging import (
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    new_correlation_id,
    set_correlation_id,
)
from plm.observability.metrics import (
    get_metrics_output,
    get_metrics_registry,
    increment_counter,
    record_histogram,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "new_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "get_correlation_id",
    "increment_counter",
    "record_histogram",
    "get_metrics_registry",
    "get_metrics_output",
]
