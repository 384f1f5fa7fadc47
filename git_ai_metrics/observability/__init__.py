"""Logging helpers for the export pipelines."""

from .logging import PipelineLogger

__all__ = ["PipelineLogger"]
