"""Metrics sinks for delivering aggregated metrics.

Available sinks:
- ApiUploader (primary hosted API)
- PersistenceFallback (local SQLite store for undelivered batches)
- OtlpExporter (optional OpenTelemetry collector)
"""

from .base import OtlpSink, PrimarySink
from .api import ApiUploader, UploadAck, UploadRequest
from .fallback import PersistenceFallback
from .otlp import NoopOtlpExporter, OtlpExporter, create_otlp_exporter

__all__ = [
    "PrimarySink",
    "OtlpSink",
    "ApiUploader",
    "UploadAck",
    "UploadRequest",
    "PersistenceFallback",
    "NoopOtlpExporter",
    "OtlpExporter",
    "create_otlp_exporter",
]
