"""
Periodic export scheduling.

Each pipeline gets its own PipelineTimer. A tick starts the pipeline's flush
as a background task and returns immediately; if the previous flush for that
pipeline is still running the tick is skipped, so there is at most one
outbound request per pipeline at a time. The API and OTLP timers share no
state and have no ordering relationship.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .pipelines import OtlpPipeline, PrimaryPipeline

logger = logging.getLogger(__name__)


class PipelineTimer:
    """Drives one pipeline's flush at a fixed interval without overlap."""

    def __init__(self, name: str, interval: float, flush: Callable[[], Awaitable[Any]]):
        """
        Args:
            name: Pipeline name for logging
            interval: Seconds between ticks
            flush: Coroutine function performing one flush cycle
        """
        self.name = name
        self.interval = interval
        self._flush = flush
        self._in_flight: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None
        self.ticks = 0
        self.skipped = 0
        self.failures = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def tick(self) -> bool:
        """
        Start a flush unless one is already running.

        Returns:
            True if a flush was started, False if the tick was skipped
        """
        if self.in_flight:
            self.skipped += 1
            logger.debug(f"Skipping {self.name} tick: previous flush still in flight")
            return False

        self.ticks += 1
        self._in_flight = asyncio.create_task(self._run_flush(), name=f"git-ai-{self.name}-flush")
        return True

    async def _run_flush(self) -> None:
        try:
            await self._flush()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(f"Error in {self.name} flush: {e}")

    def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._run(), name=f"git-ai-{self.name}-timer")

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval)
                self.tick()
            except asyncio.CancelledError:
                break

    async def wait_idle(self) -> None:
        """Wait for the in-flight flush, if any."""
        if self._in_flight is not None:
            await asyncio.gather(self._in_flight, return_exceptions=True)

    async def stop(self, grace: float) -> None:
        """
        Stop ticking and give the in-flight flush up to `grace` seconds.

        A flush still running after the grace period is cancelled.
        """
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

        if self.in_flight:
            done, _ = await asyncio.wait({self._in_flight}, timeout=grace)
            if not done:
                logger.warning(f"Cancelling {self.name} flush still running after {grace}s")
                self._in_flight.cancel()
                await asyncio.gather(self._in_flight, return_exceptions=True)

    async def final_flush(self, timeout: float) -> bool:
        """One best-effort flush bounded by `timeout`. Returns True if it finished."""
        try:
            await asyncio.wait_for(self._flush(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Final {self.name} flush timed out after {timeout}s")
        except Exception as e:
            logger.error(f"Error in final {self.name} flush: {e}")
        return False


class ExportScheduler:
    """
    Runs the primary and OTLP pipelines on independent timers.

    The OTLP timer exists only when the OTLP sink is enabled. Shutdown stops
    both timers, performs one final bounded flush per pipeline, and closes
    the sinks.
    """

    def __init__(
        self,
        primary: PrimaryPipeline,
        otlp: OtlpPipeline,
        api_interval: float,
        otlp_interval: float,
        shutdown_timeout: float = 5.0,
    ):
        self.primary = primary
        self.otlp = otlp
        self.shutdown_timeout = shutdown_timeout
        self.primary_timer = PipelineTimer(primary.name, api_interval, primary.flush)
        self.otlp_timer: Optional[PipelineTimer] = None
        if otlp.enabled:
            self.otlp_timer = PipelineTimer(otlp.name, otlp_interval, otlp.flush)
        self._started = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def start(self) -> None:
        """Start the timers. Must be called from inside the event loop."""
        if self._started:
            return
        self._started = True
        self.primary_timer.start()
        if self.otlp_timer is not None:
            self.otlp_timer.start()
        otlp = f"every {self.otlp_timer.interval}s" if self.otlp_timer else "disabled"
        logger.debug(f"Export scheduler started (api every {self.primary_timer.interval}s, otlp {otlp})")

    async def shutdown(self) -> None:
        """Stop timers, run a final flush of each pipeline, close sinks."""
        if self._stopped:
            return
        self._stopped = True

        grace = self.shutdown_timeout
        timers = [t for t in (self.primary_timer, self.otlp_timer) if t is not None]

        await asyncio.gather(*(t.stop(grace) for t in timers))
        await asyncio.gather(*(t.final_flush(grace) for t in timers))

        await self.close_sinks()
        logger.debug("Export scheduler stopped")

    async def close_sinks(self) -> None:
        """Close the API client and the OTLP exporter concurrently, each bounded by shutdown_timeout."""
        await asyncio.gather(
            self._close("API uploader", self.primary.uploader.aclose()),
            self._close("OTLP exporter", self.otlp.exporter.shutdown()),
        )

    async def _close(self, what: str, closing) -> None:
        try:
            await asyncio.wait_for(closing, timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out closing {what} after {self.shutdown_timeout}s")
        except Exception as e:
            logger.debug(f"Error closing {what}: {e}")
