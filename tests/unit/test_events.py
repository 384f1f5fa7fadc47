"""Unit tests for event translation and attributes."""

from git_ai_metrics.config import constants as c
from git_ai_metrics.metrics.attributes import ResourceAttributer
from git_ai_metrics.metrics.events import record_metric_event, record_metric_events
from git_ai_metrics.metrics.models import MetricEvent, MetricEventId, MetricKind


REPO_ATTRS = {"repo_url": "https://github.com/org/repo", "tool": "cursor", "model": "gpt-4o"}


class TestResourceAttributer:
    """Test resource and common attribute extraction."""

    def test_resource_attributes(self, attributer):
        assert dict(attributer.resource_attributes) == {
            "service.name": "git-ai",
            "service.version": "1.2.3",
        }

    def test_default_version_is_package_version(self):
        from git_ai_metrics import __version__

        assert ResourceAttributer().resource_attributes["service.version"] == __version__

    def test_common_attributes_omit_absent_and_invalid(self, attributer):
        attrs = {
            "repo_url": "https://github.com/org/repo",
            "branch": "",
            "author": None,
            "tool": 42,
            "model": "claude",
            "unrelated": "x",
        }

        assert attributer.common_attributes(attrs) == {
            "repo_url": "https://github.com/org/repo",
            "model": "claude",
        }

    def test_common_attributes_of_nothing(self, attributer):
        assert attributer.common_attributes(None) == {}


class TestRecordMetricEvent:
    """Test translating tool events into samples."""

    def test_committed_event(self, recorder, attributer):
        event = MetricEvent(
            event_id=MetricEventId.COMMITTED,
            values={
                "human_additions": 12,
                "git_diff_added_lines": 50,
                "git_diff_deleted_lines": 4,
                "ai_additions": [30, 8],
                "ai_accepted": [20, 5],
            },
            attrs=REPO_ATTRS,
        )

        assert record_metric_event(recorder, attributer, event) is True

        snapshot = recorder.snapshot()
        assert snapshot.value(c.COMMITTED_HUMAN_ADDITIONS, REPO_ATTRS) == 12
        assert snapshot.value(c.COMMITTED_DIFF_ADDED, REPO_ATTRS) == 50
        assert snapshot.value(c.COMMITTED_DIFF_DELETED, REPO_ATTRS) == 4
        assert snapshot.value(c.COMMITTED_AI_ADDITIONS, REPO_ATTRS) == 38
        assert snapshot.value(c.COMMITTED_AI_ACCEPTED, REPO_ATTRS) == 25

    def test_committed_zero_ai_totals_are_not_recorded(self, recorder, attributer):
        event = MetricEvent(
            event_id=MetricEventId.COMMITTED,
            values={"human_additions": 3, "ai_additions": [0, 0], "ai_accepted": []},
        )

        record_metric_event(recorder, attributer, event)

        assert recorder.snapshot().names() == [c.COMMITTED_HUMAN_ADDITIONS]

    def test_agent_usage_event(self, recorder, attributer):
        event = MetricEvent(event_id=MetricEventId.AGENT_USAGE, attrs=REPO_ATTRS)

        record_metric_event(recorder, attributer, event)
        record_metric_event(recorder, attributer, event)

        assert recorder.snapshot().value(c.AGENT_USAGE_COUNT, REPO_ATTRS) == 2

    def test_checkpoint_event(self, recorder, attributer):
        event = MetricEvent(
            event_id=MetricEventId.CHECKPOINT,
            values={"lines_added": 17, "lines_deleted": 2},
            attrs={"tool": "claude"},
        )

        record_metric_event(recorder, attributer, event)

        snapshot = recorder.snapshot()
        assert snapshot.value(c.CHECKPOINT_COUNT, {"tool": "claude"}) == 1
        added = snapshot.get(c.CHECKPOINT_LINES_ADDED, {"tool": "claude"})
        assert added.kind == MetricKind.HISTOGRAM
        assert added.histogram.count == 1
        assert added.histogram.sum == 17

    def test_invalid_values_are_skipped(self, recorder, attributer):
        event = MetricEvent(
            event_id=MetricEventId.COMMITTED,
            values={"human_additions": -3, "git_diff_added_lines": "many", "ai_additions": [5, "x", -1]},
        )

        record_metric_event(recorder, attributer, event)

        snapshot = recorder.snapshot()
        assert snapshot.names() == [c.COMMITTED_AI_ADDITIONS]
        assert snapshot.value(c.COMMITTED_AI_ADDITIONS) == 5

    def test_install_hooks_not_exported(self, recorder, attributer):
        event = MetricEvent(event_id=MetricEventId.INSTALL_HOOKS, values={"count": 1})

        assert record_metric_event(recorder, attributer, event) is False
        assert recorder.snapshot().is_empty()

    def test_unknown_event_is_skipped(self, recorder, attributer):
        assert record_metric_event(recorder, attributer, MetricEvent(event_id=99)) is False
        assert recorder.snapshot().is_empty()

    def test_record_many(self, recorder, attributer):
        events = [
            MetricEvent(event_id=MetricEventId.AGENT_USAGE),
            MetricEvent(event_id=MetricEventId.INSTALL_HOOKS),
            MetricEvent(event_id=MetricEventId.CHECKPOINT, values={"lines_added": 1}),
        ]

        assert record_metric_events(recorder, attributer, events) == 2
