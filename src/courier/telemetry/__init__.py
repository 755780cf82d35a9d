import os
import socket
from datetime import datetime
from typing import Optional

from . import logging, metrics, tracing
from .logging import LoggingConfig
from .metrics import MetricsConfig
from .tracing import TracingConfig


def process_metadata(service_name: str = "courier") -> dict:
    return {
        "service_name": service_name,
        "pid": os.getpid(),
        "host_name": socket.gethostname(),
        "start_time": datetime.now().isoformat(),
    }


def configure(
    logging: Optional[LoggingConfig] = None,
    tracing: Optional[TracingConfig] = None,
    metrics: Optional[MetricsConfig] = None,
    service_name: str = "courier",
) -> None:
    """Apply whichever telemetry configs are given. Each one is applied at most once per process."""
    from . import logging as _logging, metrics as _metrics, tracing as _tracing

    metadata = process_metadata(service_name)

    if logging is not None:
        _logging._apply_logging_config(cfg=logging, metadata=metadata)

    if tracing is not None:
        _tracing._apply_tracing_config(cfg=tracing, metadata=metadata)

    if metrics is not None:
        _metrics._apply_metrics_config(cfg=metrics, metadata=metadata)


__all__ = [
    "logging",
    "metrics",
    "tracing",
    "LoggingConfig",
    "MetricsConfig",
    "TracingConfig",
    "configure",
    "process_metadata",
]
