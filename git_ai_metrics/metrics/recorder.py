"""
In-process metrics aggregation.

MetricsRecorder holds counters and histograms keyed by metric name plus
attribute set. Producers call record() from any thread; sinks read an
immutable snapshot(). Counters are cumulative for the life of the process.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from bisect import bisect_left
from dataclasses import dataclass, field
from numbers import Real
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..config.constants import DEFAULT_HISTOGRAM_BOUNDS
from .models import AttributeKey, HistogramData, MetricKind, MetricSample, attribute_key

logger = logging.getLogger(__name__)

_Identity = Tuple[str, AttributeKey]


class _HistogramAccumulator:
    """Mutable histogram state. Only touched under the recorder lock."""

    __slots__ = ("bounds", "count", "sum", "min", "max", "bucket_counts")

    def __init__(self, bounds: Tuple[float, ...]):
        self.bounds = bounds
        self.count = 0
        self.sum = 0.0
        self.min: Optional[float] = None
        self.max: Optional[float] = None
        self.bucket_counts = [0] * (len(bounds) + 1)

    def observe(self, value: float) -> None:
        self.count += 1
        self.sum += value
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)
        self.bucket_counts[bisect_left(self.bounds, value)] += 1

    def freeze(self) -> HistogramData:
        return HistogramData(
            count=self.count,
            sum=self.sum,
            min=self.min,
            max=self.max,
            bucket_counts=tuple(self.bucket_counts),
            explicit_bounds=self.bounds,
        )


@dataclass(frozen=True)
class RecorderSnapshot:
    """Immutable copy of the recorder's aggregate state."""
    samples: Tuple[MetricSample, ...] = ()
    taken_at: float = field(default_factory=time.time)
    start_time: float = field(default_factory=time.time)

    def get(self, name: str, attributes: Optional[Mapping[str, str]] = None) -> Optional[MetricSample]:
        key = (name, attribute_key(attributes))
        for sample in self.samples:
            if sample.identity == key:
                return sample
        return None

    def value(self, name: str, attributes: Optional[Mapping[str, str]] = None) -> float:
        """Aggregate value for an identity; 0 when it was never recorded."""
        sample = self.get(name, attributes)
        return sample.value if sample is not None else 0

    def names(self) -> List[str]:
        return sorted({s.name for s in self.samples})

    def is_empty(self) -> bool:
        return not self.samples

    def delta_since(self, previous: Optional[RecorderSnapshot]) -> List[MetricSample]:
        """
        Compute what changed since an earlier snapshot.

        Counters yield their increase; histograms yield the increase in
        count, sum and bucket counts (min/max stay cumulative). Identities
        that did not change are left out.

        Args:
            previous: Earlier snapshot of the same recorder, or None

        Returns:
            List of delta samples
        """
        before: Dict[_Identity, MetricSample] = {}
        if previous is not None:
            before = {s.identity: s for s in previous.samples}

        deltas: List[MetricSample] = []
        for sample in self.samples:
            prior = before.get(sample.identity)
            if sample.kind == MetricKind.COUNTER:
                increase = sample.value - (prior.value if prior else 0)
                if increase > 0:
                    deltas.append(_replace_value(sample, increase))
            else:
                delta = _histogram_delta(sample.histogram, prior.histogram if prior else None)
                if delta is not None:
                    deltas.append(MetricSample(
                        name=sample.name,
                        kind=sample.kind,
                        value=delta.sum,
                        attributes=dict(sample.attributes),
                        timestamp=sample.timestamp,
                        histogram=delta,
                    ))
        return deltas


def _replace_value(sample: MetricSample, value: float) -> MetricSample:
    return MetricSample(
        name=sample.name,
        kind=sample.kind,
        value=value,
        attributes=dict(sample.attributes),
        timestamp=sample.timestamp,
    )


def _histogram_delta(current: Optional[HistogramData], prior: Optional[HistogramData]) -> Optional[HistogramData]:
    if current is None:
        return None
    if prior is None or prior.explicit_bounds != current.explicit_bounds:
        return current if current.count > 0 else None
    if current.count <= prior.count:
        return None
    return HistogramData(
        count=current.count - prior.count,
        sum=current.sum - prior.sum,
        min=current.min,
        max=current.max,
        bucket_counts=tuple(a - b for a, b in zip(current.bucket_counts, prior.bucket_counts)),
        explicit_bounds=current.explicit_bounds,
    )


class MetricsRecorder:
    """
    Thread-safe aggregator for counters and histograms.

    Features:
    - O(1) amortized record() that never blocks on I/O and never raises
    - Merge by (name, attributes): sum for counters, observe for histograms
    - Non-resetting snapshots, so several sinks can read the same state
    """

    def __init__(self, histogram_bounds: Sequence[float] = DEFAULT_HISTOGRAM_BOUNDS):
        """
        Initialize the recorder.

        Args:
            histogram_bounds: Explicit bucket boundaries for every histogram
        """
        self.histogram_bounds = tuple(float(b) for b in histogram_bounds)
        self.start_time = time.time()
        self._lock = threading.Lock()
        self._kinds: Dict[str, MetricKind] = {}
        self._counters: Dict[_Identity, float] = {}
        self._histograms: Dict[_Identity, _HistogramAccumulator] = {}
        self._attributes: Dict[_Identity, Dict[str, str]] = {}
        self._updated_at: Dict[_Identity, float] = {}

    def record(
        self,
        name: str,
        kind: MetricKind,
        delta: float,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Record a counter increment or a histogram observation.

        Invalid input (non-numeric or negative counter delta, kind mismatch)
        is logged and ignored.

        Args:
            name: Metric name
            kind: Counter or histogram
            delta: Counter increment or observed value
            attributes: Attribute set identifying the series
        """
        if isinstance(delta, bool) or not isinstance(delta, Real) or not math.isfinite(delta):
            logger.debug(f"Ignoring non-numeric value for {name}: {delta!r}")
            return
        if kind == MetricKind.COUNTER and delta < 0:
            logger.debug(f"Ignoring negative counter delta for {name}: {delta}")
            return

        key: _Identity = (name, attribute_key(attributes))
        now = time.time()

        with self._lock:
            known = self._kinds.setdefault(name, kind)
            if known != kind:
                logger.warning(f"Metric {name} already registered as {known.value}, ignoring {kind.value}")
                return

            if key not in self._attributes:
                self._attributes[key] = dict(key[1])

            if kind == MetricKind.COUNTER:
                self._counters[key] = self._counters.get(key, 0) + delta
            else:
                histogram = self._histograms.get(key)
                if histogram is None:
                    histogram = self._histograms[key] = _HistogramAccumulator(self.histogram_bounds)
                histogram.observe(float(delta))
            self._updated_at[key] = now

    def snapshot(self) -> RecorderSnapshot:
        """Return an immutable copy of the current aggregate state."""
        with self._lock:
            counters = list(self._counters.items())
            histograms = [(key, h.freeze()) for key, h in self._histograms.items()]
            attributes = {key: dict(attrs) for key, attrs in self._attributes.items()}
            updated_at = dict(self._updated_at)

        samples: List[MetricSample] = []
        for key, value in counters:
            samples.append(MetricSample(
                name=key[0],
                kind=MetricKind.COUNTER,
                value=value,
                attributes=attributes[key],
                timestamp=updated_at[key],
            ))
        for key, data in histograms:
            samples.append(MetricSample(
                name=key[0],
                kind=MetricKind.HISTOGRAM,
                value=data.sum,
                attributes=attributes[key],
                timestamp=updated_at[key],
                histogram=data,
            ))
        samples.sort(key=lambda s: s.identity)

        return RecorderSnapshot(samples=tuple(samples), start_time=self.start_time)

    def series_count(self) -> int:
        with self._lock:
            return len(self._counters) + len(self._histograms)
