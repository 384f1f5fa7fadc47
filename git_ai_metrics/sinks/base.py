"""Base interfaces for metrics sinks."""

from typing import Protocol

from ..metrics.models import PendingBatch
from ..metrics.recorder import RecorderSnapshot


class PrimarySink(Protocol):
    """Protocol for the primary (API) sink."""

    async def upload(self, batch: PendingBatch) -> object:
        """Deliver a batch; raise UploadError on failure."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


class OtlpSink(Protocol):
    """Protocol for the optional OTLP sink. Implementations never raise."""

    enabled: bool

    async def export(self, snapshot: RecorderSnapshot) -> bool:
        """Export cumulative state; return True when delivered."""
        ...

    async def shutdown(self) -> None:
        ...
