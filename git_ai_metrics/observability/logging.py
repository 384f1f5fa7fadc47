"""
Structured logging utility for export pipelines.

This module provides a consistent logging interface for the primary and OTLP
pipelines, prefixing every message with key=value fields such as pipeline,
batch_id and outcome.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional


class PipelineLogger:
    """Structured logger for an export pipeline."""

    def __init__(self, pipeline_name: str):
        """
        Initialize logger for a specific pipeline.

        Args:
            pipeline_name: Name of the pipeline (e.g., "api", "otlp")
        """
        self.pipeline = pipeline_name
        self.logger = logging.getLogger(f"git_ai_metrics.pipelines.{pipeline_name}")

    def _format_message(self, message: str, **kwargs) -> str:
        """Format message with structured fields."""
        fields = [f"pipeline={self.pipeline}"]

        for key, value in kwargs.items():
            if value is not None:
                fields.append(f"{key}={value}")

        return f"[{' '.join(fields)}] {message}"

    def debug(self, message: str, batch_id: Optional[str] = None, **kwargs):
        self.logger.debug(self._format_message(message, batch_id=batch_id, **kwargs))

    def info(self, message: str, batch_id: Optional[str] = None, **kwargs):
        self.logger.info(self._format_message(message, batch_id=batch_id, **kwargs))

    def warning(self, message: str, batch_id: Optional[str] = None,
                error: Optional[BaseException] = None, **kwargs):
        if error:
            kwargs['error_type'] = type(error).__name__
            kwargs['error_msg'] = str(error)
        self.logger.warning(self._format_message(message, batch_id=batch_id, **kwargs))

    def error(self, message: str, batch_id: Optional[str] = None,
              error: Optional[BaseException] = None, **kwargs):
        """Log error message with structured fields."""
        if error:
            kwargs['error_type'] = type(error).__name__
            kwargs['error_msg'] = str(error)

        self.logger.error(self._format_message(message, batch_id=batch_id, **kwargs))

    @contextmanager
    def track_flush(self, tick: int):
        """
        Context manager to time a flush cycle and log its outcome.

        Args:
            tick: Sequence number of the scheduler tick

        Yields:
            Dict the caller fills with outcome fields
        """
        start_time = time.time()
        self.debug("Starting flush", tick=tick)

        summary: Dict[str, Any] = {}
        try:
            yield summary

            duration = time.time() - start_time
            self.debug(
                "Completed flush",
                tick=tick,
                duration_ms=int(duration * 1000),
                **summary
            )

        except Exception as e:
            duration = time.time() - start_time
            self.error(
                "Failed flush",
                tick=tick,
                duration_ms=int(duration * 1000),
                error=e
            )
            raise
