"""Telemetry configuration read from `BIMARU_*` and standard `OTEL_*` variables."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field

from .logger import init_logging
from .metrics import init_metrics
from .tracer import init_tracing

_TRUE_VALUES = {"1", "true", "yes", "on"}

# Exporter switches, and the per-signal OTLP endpoint each one is enabled by.
_SIGNALS = (
    ("enable_tracing", "BIMARU_ENABLE_TRACING", "otlp_traces_endpoint", "traces"),
    ("enable_metrics", "BIMARU_ENABLE_METRICS", "otlp_metrics_endpoint", "metrics"),
    ("enable_logging", "BIMARU_ENABLE_LOGGING", "otlp_logs_endpoint", "logs"),
)


def _signal_endpoint(signal: str) -> str | None:
    explicit = os.getenv(f"OTEL_EXPORTER_OTLP_{signal.upper()}_ENDPOINT")
    if explicit:
        return explicit
    base = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    return f"{base.rstrip('/')}/v1/{signal}" if base else None


def _parse_attributes(raw: str) -> dict[str, str]:
    """Parse `key=value,key=value`; entries without `=` are skipped."""
    pairs = (part.split("=", 1) for part in raw.split(",") if "=" in part)
    return {key.strip(): value.strip() for key, value in pairs}


class TelemetryConfig(BaseModel):
    """Which exporters run, where they send data and how the process is described."""

    enable_tracing: bool = False
    enable_metrics: bool = False
    enable_logging: bool = False
    console_traces: bool = False
    log_level: str = "INFO"
    otlp_traces_endpoint: str | None = None
    otlp_metrics_endpoint: str | None = None
    otlp_logs_endpoint: str | None = None
    metrics_export_interval_ms: int = Field(default=5000, gt=0)
    service_name: str = "bimaru"
    resource_attributes: dict[str, str] = Field(default_factory=dict)

    def resource(self) -> dict[str, str]:
        return {"service.name": self.service_name, **self.resource_attributes}

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Construct config from the environment; a configured endpoint turns its
        exporter on, and overrides win over both."""

        data: Dict[str, Any] = {}
        for flag, env_name, endpoint_field, signal in _SIGNALS:
            endpoint = _signal_endpoint(signal)
            if endpoint:
                data[endpoint_field] = endpoint
                data[flag] = True
            elif os.getenv(env_name) is not None:
                data[flag] = os.environ[env_name].strip().lower() in _TRUE_VALUES

        console = os.getenv("BIMARU_CONSOLE_TRACES")
        if console is not None:
            data["console_traces"] = console.strip().lower() in _TRUE_VALUES
        if os.getenv("BIMARU_LOG_LEVEL"):
            data["log_level"] = os.environ["BIMARU_LOG_LEVEL"].strip().upper()
        if os.getenv("OTEL_SERVICE_NAME"):
            data["service_name"] = os.environ["OTEL_SERVICE_NAME"]
        if os.getenv("OTEL_RESOURCE_ATTRIBUTES"):
            data["resource_attributes"] = _parse_attributes(os.environ["OTEL_RESOURCE_ATTRIBUTES"])

        data.update(overrides)
        return cls(**data)


@lru_cache(maxsize=1)
def load_telemetry_config() -> TelemetryConfig:
    """Load and cache telemetry config from the environment."""

    return TelemetryConfig.from_env()


def init_telemetry(config: TelemetryConfig | None = None) -> TelemetryConfig:
    """Start the exporters the config enables and return the config in effect."""

    resolved = config or load_telemetry_config()

    if resolved.enable_tracing:
        init_tracing(resolved)
    if resolved.enable_metrics:
        init_metrics(resolved)
    if resolved.enable_logging:
        init_logging(resolved)
    return resolved
