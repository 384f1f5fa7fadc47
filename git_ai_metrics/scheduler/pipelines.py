"""
Flush cycles for the primary and OTLP pipelines.

PrimaryPipeline drains the fallback store oldest first, then delivers the
newest in-memory delta batch. A batch that cannot be delivered is handed to
the fallback store; if the store is unavailable it is dropped with a warning.

OtlpPipeline exports the cumulative recorder state and drops on failure.
It never touches the fallback store and never mutates the recorder.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from ..metrics.models import FallbackRecord, PendingBatch
from ..metrics.recorder import MetricsRecorder, RecorderSnapshot
from ..observability.logging import PipelineLogger
from ..reliability.errors import FallbackStoreError, UploadError
from ..sinks.base import OtlpSink, PrimarySink
from ..sinks.fallback import PersistenceFallback

logger = logging.getLogger(__name__)


class FlushOutcome(str, Enum):
    """Terminal state of one batch within a flush cycle."""
    DELIVERED = "delivered"
    FALLBACK_STORED = "fallback_stored"
    DROPPED = "dropped"
    EMPTY = "empty"


@dataclass
class FlushResult:
    """Summary of one flush cycle."""
    outcome: FlushOutcome = FlushOutcome.EMPTY
    batch_id: Optional[str] = None
    delivered: int = 0
    replayed: int = 0
    stored: int = 0
    dropped: int = 0
    expired: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class PipelineStats:
    """Running totals across flush cycles."""
    flushes: int = 0
    delivered: int = 0
    replayed: int = 0
    fallback_stored: int = 0
    dropped: int = 0
    expired: int = 0

    def add(self, result: FlushResult) -> None:
        self.flushes += 1
        self.delivered += result.delivered
        self.replayed += result.replayed
        self.fallback_stored += result.stored
        self.dropped += result.dropped
        self.expired += result.expired


async def _offload(func: Callable[..., Any], *args: Any) -> Any:
    """Run blocking store I/O on the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


class PrimaryPipeline:
    """
    API delivery with durable fallback.

    The pipeline keeps the last captured snapshot as its baseline and sends
    only what changed since. The baseline advances as soon as a batch is
    captured, because ownership of those samples passes to the batch
    (delivered, persisted or dropped).
    """

    name = "api"

    def __init__(
        self,
        recorder: MetricsRecorder,
        uploader: PrimarySink,
        fallback: Optional[PersistenceFallback],
    ):
        """
        Args:
            recorder: Source of aggregate state
            uploader: Primary sink
            fallback: Local store for undelivered batches (None disables it)
        """
        self.recorder = recorder
        self.uploader = uploader
        self.fallback = fallback
        self.stats = PipelineStats()
        self.log = PipelineLogger(self.name)
        self._baseline: Optional[RecorderSnapshot] = None
        self._tick = 0

    def capture_batch(self) -> Optional[PendingBatch]:
        """Take the delta since the last capture as a new batch."""
        snapshot = self.recorder.snapshot()
        samples = snapshot.delta_since(self._baseline)
        self._baseline = snapshot
        if not samples:
            return None
        return PendingBatch(samples=samples, created_at=snapshot.taken_at)

    async def flush(self) -> FlushResult:
        """
        Run one flush cycle: drain the fallback store, then send the newest batch.

        Never raises UploadError or FallbackStoreError.
        """
        self._tick += 1
        result = FlushResult()

        with self.log.track_flush(self._tick) as summary:
            blocked = await self._drain_fallback(result)
            batch = self.capture_batch()

            if batch is not None:
                result.batch_id = batch.batch_id
                if blocked:
                    # Keep delivery attempts in temporal order behind older batches
                    await self._store(batch, result, attempts=0)
                else:
                    await self._deliver(batch, result)

            summary.update(
                outcome=result.outcome.value,
                delivered=result.delivered,
                replayed=result.replayed,
                stored=result.stored,
                dropped=result.dropped,
            )

        self.stats.add(result)
        return result

    async def _deliver(self, batch: PendingBatch, result: FlushResult) -> None:
        try:
            await self.uploader.upload(batch)
        except asyncio.CancelledError:
            self._store_now(batch, result, attempts=1)
            raise
        except UploadError as e:
            self.log.warning(
                "Upload failed, persisting batch",
                batch_id=batch.batch_id,
                error=e,
                status_code=e.status_code,
                category=e.category.value,
            )
            result.errors.append(str(e))
            await self._store(batch, result, attempts=1)
            return

        result.delivered += 1
        result.outcome = FlushOutcome.DELIVERED
        self.log.debug("Delivered batch", batch_id=batch.batch_id, samples=batch.size())

    async def _store(self, batch: PendingBatch, result: FlushResult, attempts: int) -> None:
        if self.fallback is None:
            self._drop(batch, result, "no fallback store configured")
            return
        try:
            await _offload(self.fallback.store, batch, attempts)
        except asyncio.CancelledError:
            # store() is idempotent per batch_id, so repeating it is harmless
            self._store_now(batch, result, attempts)
            raise
        except FallbackStoreError as e:
            result.errors.append(str(e))
            self._drop(batch, result, str(e))
            return
        result.stored += 1
        result.outcome = FlushOutcome.FALLBACK_STORED

    def _store_now(self, batch: PendingBatch, result: FlushResult, attempts: int) -> None:
        """Persist synchronously when the flush is cancelled mid-delivery (shutdown)."""
        if self.fallback is None:
            self._drop(batch, result, "flush cancelled, no fallback store configured")
            return
        try:
            self.fallback.store(batch, attempts)
        except FallbackStoreError as e:
            self._drop(batch, result, str(e))
            return
        result.stored += 1
        result.outcome = FlushOutcome.FALLBACK_STORED
        self.log.warning("Flush cancelled, persisted batch", batch_id=batch.batch_id, samples=batch.size())

    def _drop(self, batch: PendingBatch, result: FlushResult, reason: str) -> None:
        self.log.warning(
            "Dropping metrics batch",
            batch_id=batch.batch_id,
            samples=batch.size(),
            reason=reason,
        )
        result.dropped += 1
        result.outcome = FlushOutcome.DROPPED

    async def _drain_fallback(self, result: FlushResult) -> bool:
        """
        Retry persisted batches oldest first.

        Returns:
            True if a persisted batch is still undelivered, in which case
            newer batches must queue behind it
        """
        if self.fallback is None:
            return False

        try:
            result.expired += await _offload(self.fallback.discard_expired)
            records: List[FallbackRecord] = await _offload(self.fallback.pending)
        except FallbackStoreError as e:
            self.log.warning("Fallback store unavailable, skipping replay", error=e)
            result.errors.append(str(e))
            return False

        for record in records:
            try:
                await self.uploader.upload(record.batch)
            except UploadError as e:
                await self._record_failed_retry(record, e, result)
                return True

            try:
                await _offload(self.fallback.remove, record)
            except FallbackStoreError as e:
                # Delivered but still on disk; batch_id lets the API dedupe the replay
                self.log.warning("Could not remove replayed batch", batch_id=record.batch.batch_id, error=e)
                result.errors.append(str(e))
                return False
            result.replayed += 1
            self.log.debug(
                "Replayed persisted batch",
                batch_id=record.batch.batch_id,
                attempts=record.attempts + 1,
            )
        return False

    async def _record_failed_retry(self, record: FallbackRecord, error: UploadError, result: FlushResult) -> None:
        result.errors.append(str(error))
        try:
            updated = await _offload(self.fallback.mark_attempt, record)
            if self.fallback.is_expired(updated):
                await _offload(self.fallback.remove, updated)
                result.expired += 1
                self.log.warning(
                    "Discarding persisted batch after final retry",
                    batch_id=record.batch.batch_id,
                    attempts=updated.attempts,
                    error=error,
                )
            else:
                self.log.debug(
                    "Retry of persisted batch failed",
                    batch_id=record.batch.batch_id,
                    attempts=updated.attempts,
                )
        except FallbackStoreError as e:
            self.log.warning("Could not update persisted batch", batch_id=record.batch.batch_id, error=e)
            result.errors.append(str(e))


class OtlpPipeline:
    """Fire-and-forget export of the recorder state to the OTLP sink."""

    name = "otlp"

    def __init__(self, recorder: MetricsRecorder, exporter: OtlpSink):
        self.recorder = recorder
        self.exporter = exporter
        self.exported = 0
        self.failed = 0

    @property
    def enabled(self) -> bool:
        return bool(getattr(self.exporter, "enabled", False))

    async def flush(self) -> bool:
        if not self.enabled:
            return False
        try:
            ok = await self.exporter.export(self.recorder.snapshot())
        except Exception as e:
            # Exporters should not raise; keep failures isolated from the primary pipeline regardless
            logger.warning(f"OTLP exporter raised unexpectedly: {e}")
            ok = False
        if ok:
            self.exported += 1
        else:
            self.failed += 1
        return ok
