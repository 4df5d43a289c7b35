"""Tracing helpers built on OpenTelemetry."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.trace import Span, Tracer

if TYPE_CHECKING:  # pragma: no cover - typing only
    from bimaru.engine.board import Board

    from .config import TelemetryConfig


_TRACER: Tracer | None = None
_TRACER_PROVIDER: TracerProvider | None = None


def get_tracer(name: str = "bimaru") -> Tracer:
    """Return the global tracer (lazily initialised)."""
    global _TRACER
    if _TRACER is None:
        _TRACER = trace.get_tracer(name)
    return _TRACER


def init_tracing(config: TelemetryConfig) -> Tracer:
    """Install an SDK TracerProvider exporting over OTLP and/or to the console."""
    global _TRACER, _TRACER_PROVIDER

    resource = Resource.create(config.resource())
    provider = TracerProvider(resource=resource)

    if config.otlp_traces_endpoint:
        exporter = OTLPSpanExporter(endpoint=config.otlp_traces_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    if config.console_traces:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _TRACER_PROVIDER = provider
    _TRACER = provider.get_tracer(config.service_name)
    return _TRACER


@contextmanager
def board_span(tracer: Tracer, name: str, board: Board) -> Iterator[Span]:
    """Open a span tagged with the board it works on."""
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("board.name", board.name)
        span.set_attribute("board.size", board.size)
        span.set_attribute("board.max_ship_size", board.max_ship_size)
        yield span
