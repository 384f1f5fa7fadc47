"""
Translation of tool-level events into recorder samples.

Committed events feed the committed.* counters, agent usage events the
agent_usage counter, and checkpoints the checkpoint counter and line
histograms. Install-hooks and unknown events are not recorded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from ..config import constants as c
from .attributes import ResourceAttributer
from .models import MetricEvent, MetricEventId, MetricKind
from .recorder import MetricsRecorder

logger = logging.getLogger(__name__)

# Event value keys
HUMAN_ADDITIONS = "human_additions"
GIT_DIFF_ADDED_LINES = "git_diff_added_lines"
GIT_DIFF_DELETED_LINES = "git_diff_deleted_lines"
AI_ADDITIONS = "ai_additions"
AI_ACCEPTED = "ai_accepted"
LINES_ADDED = "lines_added"
LINES_DELETED = "lines_deleted"


def _as_count(value: Any) -> Optional[int]:
    """Non-negative integer, or None for anything else."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _sum_counts(values: Any) -> int:
    if not isinstance(values, (list, tuple)):
        return 0
    return sum(n for n in (_as_count(v) for v in values) if n is not None)


def _record_committed(recorder: MetricsRecorder, values: Dict[str, Any], attrs: Dict[str, str]) -> None:
    for key, name in (
        (HUMAN_ADDITIONS, c.COMMITTED_HUMAN_ADDITIONS),
        (GIT_DIFF_ADDED_LINES, c.COMMITTED_DIFF_ADDED),
        (GIT_DIFF_DELETED_LINES, c.COMMITTED_DIFF_DELETED),
    ):
        count = _as_count(values.get(key))
        if count is not None:
            recorder.record(name, MetricKind.COUNTER, count, attrs)

    # Per-tool arrays are summed into one aggregate
    for key, name in ((AI_ADDITIONS, c.COMMITTED_AI_ADDITIONS), (AI_ACCEPTED, c.COMMITTED_AI_ACCEPTED)):
        total = _sum_counts(values.get(key))
        if total > 0:
            recorder.record(name, MetricKind.COUNTER, total, attrs)


def _record_checkpoint(recorder: MetricsRecorder, values: Dict[str, Any], attrs: Dict[str, str]) -> None:
    recorder.record(c.CHECKPOINT_COUNT, MetricKind.COUNTER, 1, attrs)

    for key, name in ((LINES_ADDED, c.CHECKPOINT_LINES_ADDED), (LINES_DELETED, c.CHECKPOINT_LINES_DELETED)):
        count = _as_count(values.get(key))
        if count is not None:
            recorder.record(name, MetricKind.HISTOGRAM, count, attrs)


def record_metric_event(
    recorder: MetricsRecorder,
    attributer: ResourceAttributer,
    event: MetricEvent,
) -> bool:
    """
    Record one tool event.

    Args:
        recorder: Recorder receiving the samples
        attributer: Extracts the common attributes from the event
        event: The raw event

    Returns:
        True if the event type is exported, False if it was skipped
    """
    try:
        event_id = MetricEventId(event.event_id)
    except ValueError:
        logger.debug(f"Skipping unknown metric event id {event.event_id}")
        return False

    attrs = attributer.common_attributes(event.attrs)
    values = event.values or {}

    if event_id == MetricEventId.COMMITTED:
        _record_committed(recorder, values, attrs)
    elif event_id == MetricEventId.AGENT_USAGE:
        recorder.record(c.AGENT_USAGE_COUNT, MetricKind.COUNTER, 1, attrs)
    elif event_id == MetricEventId.CHECKPOINT:
        _record_checkpoint(recorder, values, attrs)
    else:
        # Install-hooks events are not exported
        return False
    return True


def record_metric_events(
    recorder: MetricsRecorder,
    attributer: ResourceAttributer,
    events: Iterable[MetricEvent],
) -> int:
    """Record several events, returning how many were exported."""
    return sum(1 for event in events if record_metric_event(recorder, attributer, event))
