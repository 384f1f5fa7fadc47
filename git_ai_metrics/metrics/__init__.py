"""Metrics aggregation: models, recorder, attributes and event translation."""

from .models import (
    FallbackRecord,
    HistogramData,
    MetricEvent,
    MetricEventId,
    MetricKind,
    MetricSample,
    PendingBatch,
)
from .recorder import MetricsRecorder, RecorderSnapshot
from .attributes import ResourceAttributer
from .events import record_metric_event, record_metric_events

__all__ = [
    # Models
    "FallbackRecord",
    "HistogramData",
    "MetricEvent",
    "MetricEventId",
    "MetricKind",
    "MetricSample",
    "PendingBatch",

    # Aggregation
    "MetricsRecorder",
    "RecorderSnapshot",
    "ResourceAttributer",
    "record_metric_event",
    "record_metric_events",
]
