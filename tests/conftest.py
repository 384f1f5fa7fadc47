"""Shared pytest fixtures for git-ai metrics tests."""

import asyncio
import json
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from dotenv import load_dotenv

# Load environment variables from .env file for tests
load_dotenv()

from git_ai_metrics.config.export_config import ExportConfig
from git_ai_metrics.metrics.attributes import ResourceAttributer
from git_ai_metrics.metrics.models import MetricKind, PendingBatch
from git_ai_metrics.metrics.recorder import MetricsRecorder, RecorderSnapshot
from git_ai_metrics.reliability.errors import ErrorCategory, UploadError
from git_ai_metrics.sinks.fallback import PersistenceFallback


API_ENDPOINT = "https://metrics.test/worker/metrics/upload"


class FakeUploader:
    """Primary sink double: records uploads, fails on demand."""

    def __init__(self):
        self.uploads: List[PendingBatch] = []
        self.attempts: List[str] = []
        self.fail = False
        self.closed = False
        self.delay: float = 0.0

    async def upload(self, batch: PendingBatch):
        self.attempts.append(batch.batch_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise UploadError(
                "Metrics API returned HTTP 503",
                status_code=503,
                category=ErrorCategory.SERVER_ERROR,
                is_retryable=True,
            )
        self.uploads.append(batch)

    async def aclose(self) -> None:
        self.closed = True

    def delivered_total(self, name: str) -> float:
        return sum(s.value for b in self.uploads for s in b.samples if s.name == name)


class FakeOtlpSink:
    """OTLP sink double with the same contract as OtlpExporter."""

    enabled = True

    def __init__(self, succeed: bool = True, shutdown_delay: float = 0.0):
        self.succeed = succeed
        self.shutdown_delay = shutdown_delay
        self.snapshots: List[RecorderSnapshot] = []
        self.shutdown_called = False

    async def export(self, snapshot: RecorderSnapshot) -> bool:
        self.snapshots.append(snapshot)
        return self.succeed

    async def shutdown(self) -> None:
        self.shutdown_called = True
        if self.shutdown_delay:
            await asyncio.sleep(self.shutdown_delay)


class FakeMetricExporter:
    """Stand-in for an OTLPMetricExporter (sync export/shutdown)."""

    def __init__(self, result: Any = None, raises: Optional[Exception] = None, delay: float = 0.0,
                 shutdown_delay: float = 0.0):
        self.result = result
        self.raises = raises
        self.delay = delay
        self.shutdown_delay = shutdown_delay
        self.exported: List[Any] = []
        self.timeouts: List[float] = []
        self.shutdown_called = False

    def export(self, metrics_data, timeout_millis: float = 10_000, **kwargs):
        self.timeouts.append(timeout_millis)
        if self.delay:
            time.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        self.exported.append(metrics_data)
        return self.result

    def shutdown(self, timeout_millis: float = 30_000, **kwargs):
        self.shutdown_called = True
        if self.shutdown_delay:
            time.sleep(self.shutdown_delay)


@pytest.fixture
def db_path(tmp_path):
    """Fallback database path inside the test's temp dir."""
    return tmp_path / "internal" / "metrics.db"


@pytest.fixture
def export_config(db_path):
    """Export configuration pointing at a fake API and a temp database."""
    return ExportConfig(
        api_endpoint=API_ENDPOINT,
        api_key="test-api-key",
        api_export_interval=1,
        request_timeout=1,
        shutdown_timeout=1,
        fallback_db_path=str(db_path),
    )


@pytest.fixture
def recorder():
    return MetricsRecorder()


@pytest.fixture
def attributer():
    return ResourceAttributer(service_version="1.2.3")


@pytest.fixture
def fallback(db_path):
    return PersistenceFallback(db_path, max_attempts=3, max_age_seconds=24 * 60 * 60)


@pytest.fixture
def fake_uploader():
    return FakeUploader()


@pytest.fixture
def fake_otlp_sink():
    return FakeOtlpSink()


@pytest.fixture
def sample_batch(recorder):
    """A one-sample batch taken from a fresh recorder."""
    recorder.record("git_ai.checkpoint.count", MetricKind.COUNTER, 1, {"tool": "cursor"})
    return PendingBatch(samples=list(recorder.snapshot().samples))


@pytest.fixture
def mock_api():
    """
    Build an httpx.AsyncClient backed by MockTransport.

    Returns a factory taking a status code (or handler) and the list the
    captured requests are appended to.
    """
    requests: List[httpx.Request] = []

    def factory(status_or_handler: Any = 200) -> httpx.AsyncClient:
        if callable(status_or_handler):
            handler: Callable[[httpx.Request], httpx.Response] = status_or_handler
        else:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status_or_handler, json={"ok": status_or_handler < 400})

        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))

    factory.requests = requests
    return factory


@pytest.fixture
def make_otlp_sink():
    return FakeOtlpSink


@pytest.fixture
def make_metric_exporter():
    return FakeMetricExporter


@pytest.fixture
def request_json():
    """Decode the JSON body of a captured request."""
    def decode(request: httpx.Request) -> Dict[str, Any]:
        return json.loads(request.content.decode("utf-8"))
    return decode


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: single-component tests under tests/unit")
    config.addinivalue_line("markers", "integration: end-to-end tests under tests/integration")
    config.addinivalue_line("markers", "slow: tests that wait on real timers")


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config, items):
    """Mark tests by directory so `-m unit` / `-m integration` select them."""
    for item in items:
        suite = item.path.parent.name
        if suite == "unit":
            item.add_marker(pytest.mark.unit)
        elif suite == "integration":
            item.add_marker(pytest.mark.integration)
