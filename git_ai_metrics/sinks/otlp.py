"""Optional OpenTelemetry metrics sink (best-effort, no hard dep).

The sink translates recorder snapshots into OTLP sums and histograms and
pushes them to a collector. It is a read-only consumer of the recorder and
never touches the fallback store: every failure is logged and dropped.

If the opentelemetry packages are not installed, enabling OTLP export is a
no-op with a one-time warning.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional

from ..config.constants import METRIC_DESCRIPTIONS, SERVICE_NAME
from ..config.export_config import ExportConfig, OtelProtocol
from ..metrics.models import MetricKind, MetricSample
from ..metrics.recorder import RecorderSnapshot
from ..reliability.errors import OtlpExportError

try:
    from opentelemetry.sdk.metrics.export import (
        AggregationTemporality,
        Histogram,
        HistogramDataPoint,
        Metric,
        MetricExportResult,
        MetricsData,
        NumberDataPoint,
        ResourceMetrics,
        ScopeMetrics,
        Sum,
    )
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.util.instrumentation import InstrumentationScope
    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False

logger = logging.getLogger(__name__)

_unavailable_warned = False
_warn_lock = threading.Lock()


def _warn_unavailable_once() -> None:
    global _unavailable_warned
    with _warn_lock:
        if _unavailable_warned:
            return
        _unavailable_warned = True
    logger.warning(
        "OTLP export is enabled but OpenTelemetry is not installed; "
        "install git-ai-metrics[otel] to export metrics"
    )


class NoopOtlpExporter:
    """Stand-in used when OTLP export is disabled or unavailable."""

    enabled = False

    async def export(self, snapshot: RecorderSnapshot) -> bool:
        return False

    async def shutdown(self) -> None:
        return


class OtlpExporter:
    """
    Pushes recorder snapshots to an OTLP collector.

    Counters become monotonic cumulative sums; histograms become cumulative
    explicit-bucket histograms. Resource attributes are attached once per
    export; common attributes travel on each data point.
    """

    enabled = True

    def __init__(
        self,
        exporter: Any,
        resource_attributes: Mapping[str, str],
        timeout_seconds: float = 10.0,
        scope_name: str = SERVICE_NAME,
    ) -> None:
        """
        Initialize the OTLP sink.

        Args:
            exporter: OTLP metric exporter (gRPC or HTTP)
            resource_attributes: service.name / service.version
            timeout_seconds: Bound on a single export call
            scope_name: Instrumentation scope name
        """
        if not OTEL_AVAILABLE:
            raise OtlpExportError("OpenTelemetry SDK is not installed")

        self._exporter = exporter
        self.timeout_seconds = timeout_seconds
        self._resource = Resource.create(dict(resource_attributes))
        self._scope = InstrumentationScope(scope_name, resource_attributes.get("service.version"))
        self._failing = False
        # Executor call from the last export; it outlives a timed-out wait
        self._pending: Optional[asyncio.Future] = None

    @property
    def export_in_progress(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def build_metrics_data(self, snapshot: RecorderSnapshot) -> MetricsData:
        """Translate a snapshot into OTLP metrics data."""
        start_ns = int(snapshot.start_time * 1e9)
        now_ns = int(snapshot.taken_at * 1e9)

        by_name: Dict[str, List[MetricSample]] = OrderedDict()
        for sample in snapshot.samples:
            by_name.setdefault(sample.name, []).append(sample)

        metrics = []
        for name, samples in by_name.items():
            kind = samples[0].kind
            if kind == MetricKind.COUNTER:
                data = Sum(
                    data_points=[self._number_point(s, start_ns, now_ns) for s in samples],
                    aggregation_temporality=AggregationTemporality.CUMULATIVE,
                    is_monotonic=True,
                )
            else:
                data = Histogram(
                    data_points=[self._histogram_point(s, start_ns, now_ns) for s in samples],
                    aggregation_temporality=AggregationTemporality.CUMULATIVE,
                )
            metrics.append(Metric(
                name=name,
                description=METRIC_DESCRIPTIONS.get(name, ""),
                unit="1",
                data=data,
            ))

        return MetricsData(resource_metrics=[
            ResourceMetrics(
                resource=self._resource,
                scope_metrics=[ScopeMetrics(scope=self._scope, metrics=metrics, schema_url="")],
                schema_url="",
            )
        ])

    @staticmethod
    def _number_point(sample: MetricSample, start_ns: int, now_ns: int) -> NumberDataPoint:
        value = sample.value
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return NumberDataPoint(
            attributes=dict(sample.attributes),
            start_time_unix_nano=start_ns,
            time_unix_nano=now_ns,
            value=value,
        )

    @staticmethod
    def _histogram_point(sample: MetricSample, start_ns: int, now_ns: int) -> HistogramDataPoint:
        data = sample.histogram
        return HistogramDataPoint(
            attributes=dict(sample.attributes),
            start_time_unix_nano=start_ns,
            time_unix_nano=now_ns,
            count=data.count,
            sum=data.sum,
            bucket_counts=list(data.bucket_counts),
            explicit_bounds=list(data.explicit_bounds),
            min=data.min if data.min is not None else 0.0,
            max=data.max if data.max is not None else 0.0,
        )

    async def export(self, snapshot: RecorderSnapshot) -> bool:
        """
        Export a snapshot. Never raises.

        Returns:
            True if the collector accepted the data
        """
        if snapshot.is_empty():
            return True

        if self.export_in_progress:
            logger.debug("Previous OTLP export still running, skipping snapshot")
            return False

        try:
            metrics_data = self.build_metrics_data(snapshot)
            loop = asyncio.get_running_loop()
            call = functools.partial(
                self._exporter.export,
                metrics_data,
                timeout_millis=self.timeout_seconds * 1000,
            )
            self._pending = loop.run_in_executor(None, call)
            self._pending.add_done_callback(_consume_result)
            result = await asyncio.wait_for(asyncio.shield(self._pending), timeout=self.timeout_seconds)
            if result is not MetricExportResult.SUCCESS:
                raise OtlpExportError(f"Collector rejected export: {result}")
        except asyncio.TimeoutError:
            self._record_failure(OtlpExportError(f"Export timed out after {self.timeout_seconds}s"))
            return False
        except Exception as e:
            self._record_failure(e)
            return False

        if self._failing:
            logger.info("OTLP export recovered")
            self._failing = False
        return True

    def _record_failure(self, error: BaseException) -> None:
        # Best-effort; log but don't raise. Repeated failures drop to debug.
        if self._failing:
            logger.debug(f"OTLP export failed again: {error}")
        else:
            logger.warning(f"OTLP export failed, dropping snapshot: {type(error).__name__}: {error}")
        self._failing = True

    async def shutdown(self) -> None:
        try:
            loop = asyncio.get_running_loop()
            await asyncio.wait_for(
                loop.run_in_executor(None, self._exporter.shutdown),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.debug(f"Error shutting down OTLP exporter: {e}")


def _consume_result(future: asyncio.Future) -> None:
    # Marks the exception retrieved even when the awaiting side timed out
    if not future.cancelled() and future.exception() is not None:
        logger.debug(f"OTLP export call finished with error: {future.exception()}")


def use_insecure_channel(endpoint: str) -> bool:
    """
    Whether a gRPC endpoint gets a plaintext channel.

    Only an explicit ``http://`` scheme disables TLS. ``https://`` and bare
    ``host:port`` endpoints connect with TLS.
    """
    return endpoint.lower().startswith("http://")


def _build_network_exporter(config: ExportConfig) -> Any:
    """Create the OTLP gRPC or HTTP exporter for the configured endpoint."""
    endpoint = config.otel_endpoint
    timeout = config.request_timeout

    if config.otel_protocol == OtelProtocol.HTTP:
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
            OTLPMetricExporter as OTLPMetricHTTPExporter,
        )
        if not endpoint.rstrip("/").endswith("/v1/metrics"):
            endpoint = endpoint.rstrip("/") + "/v1/metrics"
        headers = {"Authorization": config.otel_auth_header} if config.otel_auth_header else None
        return OTLPMetricHTTPExporter(endpoint=endpoint, headers=headers, timeout=timeout)

    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    headers = [("authorization", config.otel_auth_header)] if config.otel_auth_header else None
    return OTLPMetricExporter(
        endpoint=endpoint,
        insecure=use_insecure_channel(endpoint),
        headers=headers,
        timeout=timeout,
    )


def create_otlp_exporter(
    config: ExportConfig,
    resource_attributes: Mapping[str, str],
    exporter: Optional[Any] = None,
):
    """
    Select the OTLP sink variant for this process.

    Args:
        config: Resolved export configuration
        resource_attributes: service.name / service.version
        exporter: Optional pre-built exporter (tests inject a fake)

    Returns:
        OtlpExporter when enabled and available, NoopOtlpExporter otherwise
    """
    if not config.otel_enabled:
        return NoopOtlpExporter()

    if not OTEL_AVAILABLE:
        _warn_unavailable_once()
        return NoopOtlpExporter()

    try:
        if exporter is None:
            exporter = _build_network_exporter(config)
        sink = OtlpExporter(exporter, resource_attributes, timeout_seconds=float(config.request_timeout))
    except Exception as e:
        logger.error(f"Failed to initialize OTLP exporter: {e}")
        return NoopOtlpExporter()

    logger.info(
        f"OTLP export enabled: endpoint={config.otel_endpoint} protocol={config.otel_protocol} "
        f"interval={config.otel_export_interval}s"
    )
    return sink
