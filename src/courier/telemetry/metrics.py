"""
OpenTelemetry metrics for publishing and consuming.

Instruments are created lazily on first use, after ``configure()`` may have
installed a MeterProvider. Without one they are no-ops.
"""

import threading
from typing import Any, Callable, Dict, List

from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import get_meter_provider, set_meter_provider
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from pydantic import BaseModel, Field

from ._resource import _inject_otel_resource_attributes

# ============================================================
# CONFIG OBJECTS
# ============================================================


class MetricReader(BaseModel):
    """
    Defines how a metric reader should be constructed.
    Only push-based readers are supported (PeriodicExportingMetricReader).
    """

    reader: Any
    config: Dict[str, Any] = Field(default_factory=dict)
    exporters: List[Any] = Field(default_factory=list)


class MetricsConfig(BaseModel):
    resource: Dict[str, Any] = Field(default_factory=dict)
    readers: List[MetricReader] = Field(default_factory=list)


_CONFIGURED_METRICS = False


def _apply_metrics_config(cfg: MetricsConfig, metadata: dict):
    global _CONFIGURED_METRICS
    if _CONFIGURED_METRICS:
        return

    resource = Resource(attributes=_inject_otel_resource_attributes(resource=cfg.resource, metadata=metadata))
    provider = MeterProvider(
        resource=resource,
        metric_readers=[r.reader(exporter=exporter, **r.config) for r in cfg.readers for exporter in r.exporters],
    )
    set_meter_provider(provider)

    _CONFIGURED_METRICS = True


def get_metric_meter(name: str):
    return get_meter_provider().get_meter(name)


# ============================================================
# LAZY INSTRUMENTS
# ============================================================

_instruments: Dict[str, Any] = {}
_INSTRUMENTS_LOCK = threading.Lock()


def _get_instrument(name: str, factory: Callable):
    with _INSTRUMENTS_LOCK:
        if name not in _instruments:
            _instruments[name] = factory(get_metric_meter("courier"))
        return _instruments[name]


def messages_published():
    return _get_instrument(
        "courier.messages.published",
        lambda m: m.create_counter(
            name="courier.messages.published",
            description="Messages published to an exchange or work queue",
            unit="1",
        ),
    )


def deliveries_acked():
    return _get_instrument(
        "courier.deliveries.acked",
        lambda m: m.create_counter(
            name="courier.deliveries.acked",
            description="Deliveries acknowledged after a successful handler run",
            unit="1",
        ),
    )


def deliveries_requeued():
    return _get_instrument(
        "courier.deliveries.requeued",
        lambda m: m.create_counter(
            name="courier.deliveries.requeued",
            description="Deliveries rejected with requeue after a handler failure",
            unit="1",
        ),
    )


def handler_duration():
    return _get_instrument(
        "courier.handler.duration",
        lambda m: m.create_histogram(
            name="courier.handler.duration",
            description="Time spent in the message handler per delivery",
            unit="s",
        ),
    )


__all__ = [
    "OTLPMetricExporter",
    "ConsoleMetricExporter",
    "PeriodicExportingMetricReader",
    "MetricReader",
    "MetricsConfig",
    "get_metric_meter",
    "messages_published",
    "deliveries_acked",
    "deliveries_requeued",
    "handler_duration",
]
