"""
Logging setup for courier processes.

``LoggingConfig`` is turned into a ``logging.config.dictConfig`` dict. Records
go to stdout as text or JSON, and optionally to a plain or rotating file.
pika logs every connection step at INFO, so its logger gets its own level.
"""

import logging
import logging.config
from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(threadName)s] [%(name)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ConsoleLogHandler(BaseModel):
    type: Literal["console"] = "console"
    level: LogLevel = "DEBUG"
    json_format: bool = False


class FileLogHandler(BaseModel):
    """
    ``filename`` may use ``{service}``, ``{pid}`` and ``{timestamp}``; parent
    directories are created.
    """

    type: Literal["file"] = "file"
    level: LogLevel = "DEBUG"
    json_format: bool = False
    filename: str
    max_bytes: Optional[int] = None  # set to rotate
    backup_count: int = 5


LogHandler = Union[ConsoleLogHandler, FileLogHandler]


class LoggingConfig(BaseModel):
    level: LogLevel = "INFO"
    pika_level: LogLevel = "WARNING"
    handlers: List[LogHandler] = Field(default_factory=lambda: [ConsoleLogHandler()])

    @classmethod
    def for_cli(cls, level: str = "INFO", log_format: str = "text") -> "LoggingConfig":
        return cls(level=level, handlers=[ConsoleLogHandler(json_format=log_format == "json")])


# ============================================================
# dictConfig
# ============================================================


def _resolve_filename(template: str, metadata: dict) -> str:
    path = Path(
        template.format(
            service=metadata["service_name"],
            pid=metadata["pid"],
            timestamp=datetime.now().strftime("%Y-%m-%d_%H-%M-%S"),
        )
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


def _handler_dict(cfg: LogHandler, metadata: dict) -> dict:
    handler = {"level": cfg.level, "formatter": "json" if cfg.json_format else "text"}

    if isinstance(cfg, ConsoleLogHandler):
        handler.update({"class": "logging.StreamHandler", "stream": "ext://sys.stdout"})
    elif cfg.max_bytes:
        handler.update(
            {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": _resolve_filename(cfg.filename, metadata),
                "maxBytes": cfg.max_bytes,
                "backupCount": cfg.backup_count,
                "encoding": "utf-8",
            }
        )
    else:
        handler.update(
            {
                "class": "logging.FileHandler",
                "filename": _resolve_filename(cfg.filename, metadata),
                "encoding": "utf-8",
            }
        )
    return handler


def _build_dict_config(cfg: LoggingConfig, metadata: dict) -> dict:
    handlers = {f"{h.type}_{idx}": _handler_dict(h, metadata) for idx, h in enumerate(cfg.handlers)}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {"format": TEXT_FORMAT, "datefmt": DATE_FORMAT},
            "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT},
        },
        "handlers": handlers,
        "loggers": {"pika": {"level": cfg.pika_level}},
        "root": {"level": cfg.level, "handlers": list(handlers)},
    }


_LOGGING_CONFIGURED = False


def _apply_logging_config(cfg: LoggingConfig, metadata: dict):
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    logging.config.dictConfig(_build_dict_config(cfg, metadata))
    _LOGGING_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = [
    "LoggingConfig",
    "ConsoleLogHandler",
    "FileLogHandler",
    "get_logger",
]
