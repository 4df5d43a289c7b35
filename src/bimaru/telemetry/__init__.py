"""OpenTelemetry wiring for the solver: config, logs, traces and metrics."""

from .config import TelemetryConfig, init_telemetry, load_telemetry_config
from .logger import get_logger, init_logging
from .metrics import get_meter, init_metrics, record_solve_duration, record_solver_metric
from .tracer import board_span, get_tracer, init_tracing

__all__ = [
    "TelemetryConfig",
    "board_span",
    "get_logger",
    "get_meter",
    "get_tracer",
    "init_logging",
    "init_metrics",
    "init_telemetry",
    "init_tracing",
    "load_telemetry_config",
    "record_solve_duration",
    "record_solver_metric",
]
