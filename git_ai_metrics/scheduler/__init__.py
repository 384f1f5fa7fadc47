"""Scheduling of periodic export for the primary and OTLP pipelines."""

from .pipelines import FlushOutcome, FlushResult, OtlpPipeline, PipelineStats, PrimaryPipeline
from .scheduler import ExportScheduler, PipelineTimer

__all__ = [
    "ExportScheduler",
    "FlushOutcome",
    "FlushResult",
    "OtlpPipeline",
    "PipelineStats",
    "PipelineTimer",
    "PrimaryPipeline",
]
