"""
git-ai metrics - multi-tier delivery of usage metrics for the git-ai tool.

Recorded events are aggregated in-process and delivered through two
independent pipelines:
- Primary: batches uploaded to the hosted metrics API, with a durable
  SQLite fallback for batches that could not be delivered
- Optional: cumulative state pushed to an OpenTelemetry collector

Features:
- Non-blocking, thread-safe recording from any hook
- Environment > config file > default configuration
- Bounded retries and bounded shutdown flush
"""

__version__ = "0.1.0"

from .config.export_config import ConfigResolver, ExportConfig, resolve_config
from .metrics.attributes import ResourceAttributer
from .metrics.events import record_metric_event, record_metric_events
from .metrics.models import MetricEvent, MetricEventId, MetricKind, MetricSample, PendingBatch
from .metrics.recorder import MetricsRecorder, RecorderSnapshot
from .pipeline import MetricsPipeline
from .reliability.errors import (
    ConfigParseError,
    FallbackStoreError,
    MetricsError,
    OtlpExportError,
    UploadError,
)
from .scheduler.scheduler import ExportScheduler
from .sinks.api import ApiUploader
from .sinks.fallback import PersistenceFallback
from .sinks.otlp import OtlpExporter, create_otlp_exporter

__all__ = [
    # Lifecycle
    "MetricsPipeline",
    "ExportScheduler",

    # Configuration
    "ConfigResolver",
    "ExportConfig",
    "resolve_config",

    # Aggregation
    "MetricsRecorder",
    "RecorderSnapshot",
    "ResourceAttributer",
    "record_metric_event",
    "record_metric_events",

    # Models
    "MetricEvent",
    "MetricEventId",
    "MetricKind",
    "MetricSample",
    "PendingBatch",

    # Sinks
    "ApiUploader",
    "PersistenceFallback",
    "OtlpExporter",
    "create_otlp_exporter",

    # Errors
    "MetricsError",
    "ConfigParseError",
    "UploadError",
    "FallbackStoreError",
    "OtlpExportError",
]
