"""Prometheus metrics for lifecycle workflows.

Usage:
    from plm.observability.metrics import increment_counter, record_histogram

    increment_counter("workflows_total", labels={"transition": "BUILD", "outcome": "success"})
    record_histogram(
        "workflow_duration_seconds", 0.42, labels={"transition": "BUILD", "outcome": "success"}
    )
"""

from typing import Any, Dict, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

_registry = CollectorRegistry()

workflow_duration_seconds = Histogram(
    "plm_workflow_duration_seconds",
    "Duration of lifecycle workflow execution in seconds",
    ["transition", "outcome"],
    registry=_registry,
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0, float("inf")),
)

workflows_total = Counter(
    "plm_workflows_total",
    "Total number of lifecycle workflows by transition and outcome",
    ["transition", "outcome"],
    registry=_registry,
)

workflows_active = Gauge(
    "plm_workflows_active",
    "Number of lifecycle workflows currently running",
    ["transition"],
    registry=_registry,
)

workflow_steps_total = Counter(
    "plm_workflow_steps_total",
    "Total number of workflow steps by name and outcome",
    ["step", "outcome"],
    registry=_registry,
)

recovery_plans_total = Counter(
    "plm_recovery_plans_total",
    "Recovery plans produced by transition and strategy",
    ["transition", "strategy"],
    registry=_registry,
)

log_sink_errors_total = Counter(
    "plm_log_sink_errors_total",
    "Workflow log entries the sink failed to persist",
    registry=_registry,
)

def increment_counter(
    metric_name: str,
    value: float = 1.0,
    labels: Optional[Dict[str, str]] = None,
) -> None:
    """Increment a counter metric.

    Args:
        metric_name: Name of the counter (with or without the plm_ prefix)
        value: Amount to increment by (default: 1.0)
        labels: Optional labels as key-value pairs
    """
    metric = _get_metric(metric_name)
    if isinstance(metric, Counter):
        if labels:
            metric.labels(**labels).inc(value)
        else:
            metric.inc(value)

def record_histogram(
    metric_name: str,
    value: float,
    labels: Optional[Dict[str, str]] = None,
) -> None:
    """Record a histogram observation."""
    metric = _get_metric(metric_name)
    if isinstance(metric, Histogram):
        if labels:
            metric.labels(**labels).observe(value)
        else:
            metric.observe(value)

def adjust_gauge(
    metric_name: str,
    delta: float,
    labels: Optional[Dict[str, str]] = None,
) -> None:
    metric = _get_metric(metric_name)
    if isinstance(metric, Gauge):
        target = metric.labels(**labels) if labels else metric
        target.inc(delta)

def get_metrics_registry() -> CollectorRegistry:
    return _registry

def get_metrics_output() -> bytes:
    """Return Prometheus-formatted metrics output."""
    return generate_latest(_registry)

def _get_metric(metric_name: str) -> Any:
    if metric_name.startswith("plm_"):
        metric_name = metric_name[4:]
    return globals().get(metric_name)

__all__ = [
    "increment_counter",
    "record_histogram",
    "adjust_gauge",
    "get_metrics_registry",
    "get_metrics_output",
    "workflow_duration_seconds",
    "workflows_total",
    "workflows_active",
    "workflow_steps_total",
    "recovery_plans_total",
    "log_sink_errors_total",
]
