# quotewatch/logging_conf.py
from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from typing import Any


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs to stdout."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # Monitoring context passed via `extra=`
        for extra_key in ("symbol", "error_code", "interval_s", "module", "funcName"):
            val = getattr(record, extra_key, None)
            if val:
                payload[extra_key] = val
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(log_level: str = "INFO") -> None:
    """Configure JSON logging for quotewatch + uvicorn, suppress duplicate access logs."""
    log_level = log_level.upper()

    dict_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JsonFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "uvicorn": {"level": log_level, "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": log_level, "handlers": ["console"], "propagate": False},
            # Request lines come from the timing middleware instead
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "fastapi": {"level": log_level, "handlers": ["console"], "propagate": False},
            # Propagates to root so test log capture still sees monitoring events
            "quotewatch": {"level": log_level},
            "request": {"level": log_level, "handlers": ["console"], "propagate": False},
        },
    }

    dictConfig(dict_config)
