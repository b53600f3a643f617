"""Metric definitions used across the application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

TRANSITIONS_TOTAL = "service_request_transitions_total"
TRANSITION_REJECTIONS_TOTAL = "service_request_transition_rejections_total"
TRANSITION_DURATION_SECONDS = "service_request_transition_duration_seconds"
REQUESTS_CREATED_TOTAL = "service_requests_created_total"


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TRANSITIONS_TOTAL,
        metric_type="counter",
        description="Successful service-request status transitions.",
        label_names=("action", "to_status"),
    ),
    MetricDefinition(
        name=TRANSITION_REJECTIONS_TOTAL,
        metric_type="counter",
        description="Status changes refused by the lifecycle, by error code.",
        label_names=("action", "code"),
    ),
    MetricDefinition(
        name=TRANSITION_DURATION_SECONDS,
        metric_type="distribution",
        description="Time spent handling a status change in seconds.",
    ),
    MetricDefinition(
        name=REQUESTS_CREATED_TOTAL,
        metric_type="counter",
        description="Service requests submitted.",
    ),
)
