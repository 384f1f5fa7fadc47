"""
Metrics data models.

This module defines the samples held by the recorder, the batches handed to
the primary sink, the persisted fallback records, and the raw tool events
that feed the recorder.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class MetricKind(str, Enum):
    """Kinds of instruments the recorder aggregates."""
    COUNTER = "counter"
    HISTOGRAM = "histogram"


class MetricEventId(IntEnum):
    """Tool-level event types."""
    COMMITTED = 1
    AGENT_USAGE = 2
    INSTALL_HOOKS = 3
    CHECKPOINT = 4


AttributeKey = Tuple[Tuple[str, str], ...]


def attribute_key(attributes: Optional[Mapping[str, str]]) -> AttributeKey:
    """Canonical, order-independent identity for an attribute set."""
    if not attributes:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in attributes.items()))


@dataclass(frozen=True)
class HistogramData:
    """Pre-aggregated histogram state with explicit bucket bounds."""
    count: int
    sum: float
    min: Optional[float]
    max: Optional[float]
    bucket_counts: Tuple[int, ...]
    explicit_bounds: Tuple[float, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "sum": self.sum,
            "min": self.min,
            "max": self.max,
            "bucket_counts": list(self.bucket_counts),
            "explicit_bounds": list(self.explicit_bounds),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HistogramData:
        return cls(
            count=int(data["count"]),
            sum=float(data["sum"]),
            min=data.get("min"),
            max=data.get("max"),
            bucket_counts=tuple(int(v) for v in data["bucket_counts"]),
            explicit_bounds=tuple(float(v) for v in data["explicit_bounds"]),
        )


@dataclass(frozen=True)
class MetricSample:
    """
    One aggregate value for a (name, attribute-set) identity.

    For counters `value` is the accumulated sum. For histograms `value` is
    the sum of observations and `histogram` carries the full distribution.
    """
    name: str
    kind: MetricKind
    value: float
    attributes: Dict[str, str] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    histogram: Optional[HistogramData] = None

    @property
    def identity(self) -> Tuple[str, AttributeKey]:
        return (self.name, attribute_key(self.attributes))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
            "value": self.value,
            "attributes": dict(self.attributes),
            "timestamp": self.timestamp,
        }
        if self.histogram is not None:
            data["histogram"] = self.histogram.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MetricSample:
        histogram = data.get("histogram")
        return cls(
            name=data["name"],
            kind=MetricKind(data["kind"]),
            value=data["value"],
            attributes=dict(data.get("attributes") or {}),
            timestamp=float(data.get("timestamp", time.time())),
            histogram=HistogramData.from_dict(histogram) if histogram else None,
        )


@dataclass
class PendingBatch:
    """Samples captured at one scheduler tick, owned by the sink delivering them."""
    samples: List[MetricSample] = field(default_factory=list)
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def size(self) -> int:
        """Get the number of samples in the batch."""
        return len(self.samples)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "created_at": self.created_at,
            "samples": [s.to_dict() for s in self.samples],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PendingBatch:
        return cls(
            samples=[MetricSample.from_dict(s) for s in data.get("samples", [])],
            batch_id=data["batch_id"],
            created_at=float(data["created_at"]),
        )


@dataclass
class FallbackRecord:
    """A persisted PendingBatch plus its delivery bookkeeping."""
    record_id: int
    batch: PendingBatch
    attempts: int
    created_at: float
    last_attempt_at: Optional[float] = None

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.created_at

    def is_expired(self, max_attempts: int, max_age: float, now: Optional[float] = None) -> bool:
        """True when the record has used up its attempts or outlived max_age."""
        return self.attempts >= max_attempts or self.age(now) > max_age


@dataclass
class MetricEvent:
    """
    A raw usage event produced by the git tool.

    Attributes:
        event_id: Which kind of event this is
        values: Event payload (e.g. human_additions, lines_added)
        attrs: Per-event attributes (repo_url, tool, model, ...)
        timestamp: When the event occurred (Unix time)
    """
    event_id: int
    values: Dict[str, Any] = field(default_factory=dict)
    attrs: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
