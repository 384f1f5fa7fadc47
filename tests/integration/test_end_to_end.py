"""End-to-end integration tests for git-ai metrics."""

import time

import httpx
import pytest

from git_ai_metrics import (
    ApiUploader,
    MetricEvent,
    MetricEventId,
    MetricsPipeline,
    PersistenceFallback,
)
from git_ai_metrics.config import constants as c
from git_ai_metrics.scheduler.pipelines import FlushOutcome
from git_ai_metrics.sinks.otlp import NoopOtlpExporter

RESOURCE = {"service.name": "git-ai", "service.version": "1.2.3"}

COMMIT = MetricEvent(
    event_id=MetricEventId.COMMITTED,
    values={"human_additions": 10, "ai_additions": [7, 3]},
    attrs={"repo_url": "https://github.com/org/repo", "tool": "cursor"},
)


class ToggleApi:
    """MockTransport handler that can be switched between up and down."""

    def __init__(self):
        self.up = True
        self.bodies = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if not self.up:
            return httpx.Response(503)
        self.bodies.append(request.content)
        return httpx.Response(200, json={"accepted": True})


@pytest.mark.integration
class TestEndToEnd:
    """Recorder -> primary pipeline -> API / SQLite fallback."""

    @pytest.fixture
    def api(self):
        return ToggleApi()

    @pytest.fixture
    def pipeline(self, export_config, api):
        client = httpx.AsyncClient(transport=httpx.MockTransport(api))
        fallback = PersistenceFallback(export_config.fallback_path)
        return MetricsPipeline.from_config(
            export_config,
            uploader=ApiUploader(export_config, RESOURCE, client=client),
            fallback=fallback,
            otlp_exporter=NoopOtlpExporter(),
        )

    @pytest.mark.asyncio
    async def test_event_reaches_api(self, pipeline, api):
        assert pipeline.record_event(COMMIT) is True

        result = await pipeline.flush_once()

        assert result.outcome == FlushOutcome.DELIVERED
        assert len(api.bodies) == 1
        assert b"git_ai.committed.ai_additions" in api.bodies[0]

    @pytest.mark.asyncio
    async def test_outage_is_bridged_by_fallback(self, pipeline, api):
        api.up = False
        pipeline.record_event(COMMIT)
        down = await pipeline.flush_once()

        assert down.outcome == FlushOutcome.FALLBACK_STORED
        assert pipeline.primary.fallback.count() == 1

        api.up = True
        pipeline.record_event(COMMIT)
        up = await pipeline.flush_once()

        assert up.replayed == 1
        assert up.delivered == 1
        assert pipeline.primary.fallback.count() == 0
        # Replayed batch first, then the new one
        assert down.batch_id.encode() in api.bodies[0]
        assert up.batch_id.encode() in api.bodies[1]

    @pytest.mark.asyncio
    async def test_fallback_survives_restart(self, export_config, api):
        api.up = False
        first = MetricsPipeline.from_config(
            export_config,
            uploader=ApiUploader(export_config, RESOURCE,
                                 client=httpx.AsyncClient(transport=httpx.MockTransport(api))),
            otlp_exporter=NoopOtlpExporter(),
        )
        first.record_event(COMMIT)
        stored = await first.flush_once()
        await first.aclose()

        api.up = True
        second = MetricsPipeline.from_config(
            export_config,
            uploader=ApiUploader(export_config, RESOURCE,
                                 client=httpx.AsyncClient(transport=httpx.MockTransport(api))),
            otlp_exporter=NoopOtlpExporter(),
        )
        result = await second.flush_once()

        assert result.replayed == 1
        assert stored.batch_id.encode() in api.bodies[0]

    @pytest.mark.asyncio
    async def test_async_lifecycle(self, pipeline, api):
        await pipeline.astart()
        pipeline.record_event(COMMIT)

        await pipeline.ashutdown()

        assert len(api.bodies) == 1


@pytest.mark.integration
class TestBackgroundThread:
    """The synchronous host API: start() / shutdown() from plain code."""

    def test_start_record_shutdown(self, export_config, fake_uploader, fake_otlp_sink):
        pipeline = MetricsPipeline.from_config(
            export_config,
            uploader=fake_uploader,
            otlp_exporter=fake_otlp_sink,
        )

        with pipeline:
            pipeline.record_event(COMMIT)
            pipeline.record_event(MetricEvent(event_id=MetricEventId.AGENT_USAGE))

        assert fake_uploader.delivered_total(c.COMMITTED_HUMAN_ADDITIONS) == 10
        assert fake_uploader.delivered_total(c.COMMITTED_AI_ADDITIONS) == 10
        assert fake_uploader.delivered_total(c.AGENT_USAGE_COUNT) == 1
        assert fake_otlp_sink.shutdown_called is True
        assert fake_uploader.closed is True

    def test_hanging_otlp_shutdown_does_not_outlast_shutdown(self, export_config, fake_uploader, make_otlp_sink, caplog):
        sink = make_otlp_sink(shutdown_delay=30)
        pipeline = MetricsPipeline.from_config(export_config, uploader=fake_uploader, otlp_exporter=sink)
        pipeline.start()
        pipeline.record_event(COMMIT)

        begin = time.monotonic()
        pipeline.shutdown()

        assert time.monotonic() - begin < 3 * export_config.shutdown_timeout + 1
        assert "did not finish" not in caplog.text
        assert fake_uploader.delivered_total(c.COMMITTED_HUMAN_ADDITIONS) == 10
        assert fake_uploader.closed is True

    def test_shutdown_without_start_is_noop(self, export_config, fake_uploader):
        pipeline = MetricsPipeline.from_config(
            export_config,
            uploader=fake_uploader,
            otlp_exporter=NoopOtlpExporter(),
        )

        pipeline.shutdown()

        assert fake_uploader.attempts == []

    def test_record_never_raises(self, export_config, fake_uploader):
        pipeline = MetricsPipeline.from_config(
            export_config,
            uploader=fake_uploader,
            otlp_exporter=NoopOtlpExporter(),
        )

        assert pipeline.record_event(MetricEvent(event_id=MetricEventId.COMMITTED, values=None)) is True
        assert pipeline.record_event(MetricEvent(event_id="not-an-id")) is False


def test_integration_tests_carry_integration_marker(request):
    assert request.node.get_closest_marker("integration") is not None
    assert request.node.get_closest_marker("unit") is None
