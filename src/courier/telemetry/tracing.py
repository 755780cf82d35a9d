"""
OpenTelemetry tracing for broker operations.

Every publish, bind, consume and delivery runs inside a span opened with
``messaging_span``, which stamps the RabbitMQ messaging attributes. Until
``configure(tracing=...)`` installs a TracerProvider the spans are no-ops.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from pydantic import BaseModel, ConfigDict, Field

from ._resource import _inject_otel_resource_attributes

MESSAGING_SYSTEM = "rabbitmq"

# ============================================================
# Pydantic CONFIG OBJECTS
# ============================================================


class SamplerConfig(BaseModel):
    """
    Sampling strategy, e.g. ``TraceIdRatioBased`` with ``args={"rate": 0.1}``.
    """

    sampler: Any
    args: Dict[str, Any] = Field(default_factory=dict)


class ExporterConfig(BaseModel):
    """
    Exporter built when the config is applied, not when it is declared.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    exporter: Any
    args: Dict[str, Any] = Field(default_factory=dict)

    def build(self):
        return self.exporter(**self.args)


class SpanProcessor(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    processor: Any  # BatchSpanProcessor, SimpleSpanProcessor, custom
    config: Dict[str, Any] = Field(default_factory=dict)
    exporters: List[Any] = Field(default_factory=list)


class TracingConfig(BaseModel):
    resource: Dict[str, Any] = Field(default_factory=dict)
    sampler: Optional[SamplerConfig] = None
    processors: List[SpanProcessor] = Field(default_factory=list)

    @classmethod
    def otlp(cls, endpoint: Optional[str] = None, insecure: bool = True) -> "TracingConfig":
        """Batch-export spans to an OTLP collector (``OTEL_EXPORTER_OTLP_ENDPOINT`` when no endpoint is given)."""
        args: Dict[str, Any] = {"insecure": insecure}
        if endpoint:
            args["endpoint"] = endpoint
        return cls(
            processors=[
                SpanProcessor(
                    processor=BatchSpanProcessor,
                    exporters=[ExporterConfig(exporter=OTLPSpanExporter, args=args)],
                )
            ]
        )

    @classmethod
    def console(cls) -> "TracingConfig":
        return cls(processors=[SpanProcessor(processor=SimpleSpanProcessor, exporters=[ConsoleSpanExporter()])])


# ============================================================
# APPLY TRACING CONFIG
# ============================================================

_TRACING_CONFIGURED = False
_TRACING_LOCK = threading.Lock()


def _build_provider(cfg: TracingConfig, metadata: dict) -> TracerProvider:
    resource = Resource(attributes=_inject_otel_resource_attributes(resource=cfg.resource, metadata=metadata))

    kwargs: Dict[str, Any] = {"resource": resource}
    if cfg.sampler:
        kwargs["sampler"] = cfg.sampler.sampler(**cfg.sampler.args)
    provider = TracerProvider(**kwargs)

    for p in cfg.processors:
        for exporter in p.exporters:
            if isinstance(exporter, ExporterConfig):
                exporter = exporter.build()
            provider.add_span_processor(p.processor(exporter, **p.config))

    return provider


def _apply_tracing_config(cfg: TracingConfig, metadata: dict):
    """Install the global TracerProvider. Only the first call in a process has an effect."""
    global _TRACING_CONFIGURED

    with _TRACING_LOCK:
        if _TRACING_CONFIGURED:
            return
        trace.set_tracer_provider(_build_provider(cfg, metadata))
        _TRACING_CONFIGURED = True


# ============================================================
# SPANS
# ============================================================


def get_tracer(name: str = "courier"):
    return trace.get_tracer(name)


@contextmanager
def messaging_span(
    tracer, name: str, destination: str, attributes: Optional[Dict[str, Any]] = None
) -> Iterator[trace.Span]:
    """
    Open a span for one broker operation.

    Extra attributes with a ``None`` value are dropped.
    """
    span_attributes = {
        "messaging.system": MESSAGING_SYSTEM,
        "messaging.destination.name": destination,
    }
    span_attributes.update({k: v for k, v in (attributes or {}).items() if v is not None})

    with tracer.start_as_current_span(name, attributes=span_attributes) as span:
        yield span


__all__ = [
    "OTLPSpanExporter",
    "BatchSpanProcessor",
    "ConsoleSpanExporter",
    "SimpleSpanProcessor",
    "SamplerConfig",
    "SpanProcessor",
    "TracingConfig",
    "ExporterConfig",
    "get_tracer",
    "messaging_span",
]
