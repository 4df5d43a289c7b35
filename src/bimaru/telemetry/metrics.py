"""Solver metric instruments on top of the OpenTelemetry metrics API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Counter, Histogram, Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

if TYPE_CHECKING:  # pragma: no cover
    from .config import TelemetryConfig

# name -> (unit, description) for the counters the solver reports.
SOLVER_COUNTERS: dict[str, tuple[str, str]] = {
    "bimaru_strategy_runs_total": ("1", "Strategy executions, by level and outcome"),
    "bimaru_lookahead_hypotheses_total": ("1", "Candidate ships tried on a cloned board"),
    "bimaru_solves_total": ("1", "Finished solve attempts, by outcome"),
}
SOLVE_DURATION = "bimaru_solve_duration_seconds"

_METER_PROVIDER: MeterProvider | None = None
_METER: Meter | None = None
_INSTRUMENTS: dict[str, Counter] = {}
_HISTOGRAMS: dict[str, Histogram] = {}

MetricAttributes = Mapping[str, str | bool | int | float]


def get_meter(name: str = "bimaru") -> Meter:
    global _METER
    if _METER is None:
        _METER = otel_metrics.get_meter(name)
    return _METER


def init_metrics(config: TelemetryConfig) -> Meter:
    """Install an SDK MeterProvider, periodically exporting over OTLP when configured."""
    global _METER_PROVIDER, _METER, _INSTRUMENTS, _HISTOGRAMS

    readers = []
    if config.otlp_metrics_endpoint:
        exporter = OTLPMetricExporter(endpoint=config.otlp_metrics_endpoint, insecure=True)
        readers.append(
            PeriodicExportingMetricReader(
                exporter, export_interval_millis=config.metrics_export_interval_ms
            )
        )

    provider = MeterProvider(resource=Resource.create(config.resource()), metric_readers=readers)
    otel_metrics.set_meter_provider(provider)

    _METER_PROVIDER = provider
    _METER = provider.get_meter(config.service_name)
    _INSTRUMENTS = {}
    _HISTOGRAMS = {}
    return _METER


def record_solver_metric(name: str, value: float, attrs: MetricAttributes | None = None) -> None:
    """Add to a named counter, creating it on first use."""
    instrument = _INSTRUMENTS.get(name)
    if instrument is None:
        unit, description = SOLVER_COUNTERS.get(name, ("1", ""))
        instrument = get_meter().create_counter(name, unit=unit, description=description)
        _INSTRUMENTS[name] = instrument
    instrument.add(value, attributes=attrs or {})


def record_solve_duration(seconds: float, attrs: MetricAttributes | None = None) -> None:
    histogram = _HISTOGRAMS.get(SOLVE_DURATION)
    if histogram is None:
        histogram = get_meter().create_histogram(
            SOLVE_DURATION, unit="s", description="Wall time of Solver.solve"
        )
        _HISTOGRAMS[SOLVE_DURATION] = histogram
    histogram.record(seconds, attributes=attrs or {})
