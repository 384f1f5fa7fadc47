"""
Lifecycle-scoped metrics pipeline.

MetricsPipeline owns the recorder, the sinks and the scheduler. It is built
once at process start, handed explicitly to event producers, and torn down
at exit with a final bounded flush. Producers only ever touch the recorder,
so recording never waits on the network.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Mapping, Optional

from .config.export_config import ExportConfig, resolve_config
from .metrics.attributes import ResourceAttributer
from .metrics.events import record_metric_event
from .metrics.models import MetricEvent, MetricKind
from .metrics.recorder import MetricsRecorder
from .scheduler.pipelines import FlushResult, OtlpPipeline, PrimaryPipeline
from .scheduler.scheduler import ExportScheduler
from .sinks.api import ApiUploader
from .sinks.fallback import PersistenceFallback
from .sinks.otlp import create_otlp_exporter

logger = logging.getLogger(__name__)


class MetricsPipeline:
    """
    Central owner of the metrics subsystem.

    Usage from a synchronous tool:

        pipeline = MetricsPipeline.from_config()
        pipeline.start()                 # background thread + event loop
        pipeline.record_event(event)     # from any hook, returns immediately
        pipeline.shutdown()              # final bounded flush, joins thread

    Async hosts use `await astart()` / `await ashutdown()` instead.
    """

    def __init__(
        self,
        config: ExportConfig,
        recorder: MetricsRecorder,
        attributer: ResourceAttributer,
        primary: PrimaryPipeline,
        otlp: OtlpPipeline,
    ):
        self.config = config
        self.recorder = recorder
        self.attributer = attributer
        self.primary = primary
        self.otlp = otlp
        self.scheduler = ExportScheduler(
            primary,
            otlp,
            api_interval=config.api_export_interval,
            otlp_interval=config.otel_export_interval,
            shutdown_timeout=config.shutdown_timeout,
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @classmethod
    def from_config(
        cls,
        config: Optional[ExportConfig] = None,
        uploader: Optional[Any] = None,
        fallback: Optional[PersistenceFallback] = None,
        otlp_exporter: Optional[Any] = None,
    ) -> MetricsPipeline:
        """
        Build the pipeline from a resolved configuration.

        Args:
            config: Export configuration (resolved from env and file if omitted)
            uploader: Primary sink override
            fallback: Fallback store override
            otlp_exporter: OTLP sink override (any object with export/shutdown)
        """
        config = config or resolve_config()
        attributer = ResourceAttributer()
        recorder = MetricsRecorder()

        if uploader is None:
            uploader = ApiUploader(config, attributer.resource_attributes)
        if fallback is None:
            fallback = PersistenceFallback(
                config.fallback_path,
                max_attempts=config.fallback_max_attempts,
                max_age_seconds=config.fallback_max_age,
            )
        if otlp_exporter is None:
            otlp_exporter = create_otlp_exporter(config, attributer.resource_attributes)

        return cls(
            config=config,
            recorder=recorder,
            attributer=attributer,
            primary=PrimaryPipeline(recorder, uploader, fallback),
            otlp=OtlpPipeline(recorder, otlp_exporter),
        )

    # Producer handles

    def record_event(self, event: MetricEvent) -> bool:
        """Record a tool event. Never blocks on I/O and never raises."""
        try:
            return record_metric_event(self.recorder, self.attributer, event)
        except Exception as e:
            logger.debug(f"Failed to record metric event: {e}")
            return False

    def record(
        self,
        name: str,
        kind: MetricKind,
        delta: float,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.recorder.record(name, kind, delta, attributes)

    # Async lifecycle

    async def astart(self) -> None:
        self.scheduler.start()

    async def ashutdown(self) -> None:
        await self.scheduler.shutdown()

    async def flush_once(self) -> FlushResult:
        """Run one primary flush cycle in the current loop (CLI / tests)."""
        result = await self.primary.flush()
        await self.otlp.flush()
        return result

    async def aclose(self) -> None:
        """Release sink resources without a final flush."""
        await self.scheduler.close_sinks()

    # Background thread lifecycle

    def start(self) -> None:
        """Run the scheduler on a dedicated daemon thread with its own loop."""
        if self._thread is not None:
            return

        self._thread = threading.Thread(target=self._run_loop, name="git-ai-metrics", daemon=True)
        self._thread.start()
        self._ready.wait()

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self.scheduler.start)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Final flush and stop the background thread.

        Waits at most `timeout` seconds. The default covers the three
        steps each bounded by the configured shutdown timeout (in-flight
        grace, final flush, closing sinks) plus one second of slack.
        """
        if self._thread is None or self._loop is None:
            return

        timeout = timeout if timeout is not None else 3 * self.config.shutdown_timeout + 1
        future = asyncio.run_coroutine_threadsafe(self.scheduler.shutdown(), self._loop)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.warning(f"Metrics shutdown did not finish within {timeout}s")
            future.cancel()
        except Exception as e:
            logger.warning(f"Error during metrics shutdown: {e}")

        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout)
        self._thread = None
        self._loop = None
        self._ready.clear()

    def __enter__(self) -> MetricsPipeline:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
