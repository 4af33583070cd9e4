# quotefeed/logging_conf.py
from __future__ import annotations

import json
import logging
import os
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
        for extra_key in ("module", "funcName"):
            val = getattr(record, extra_key, None)
            if val:
                payload[extra_key] = val
        return json.dumps(payload, ensure_ascii=False)


def _json_logger(level: str) -> dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def setup_logging(level: str | None = None) -> None:
    """Configure JSON logging for quotefeed + uvicorn; uvicorn access lines are replaced by ours."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    dict_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": {
            "uvicorn": _json_logger(log_level),
            "uvicorn.error": _json_logger(log_level),
            # timing_middleware emits one JSON line per request under "request"
            "uvicorn.access": _json_logger("WARNING"),
            "fastapi": _json_logger(log_level),
            "starlette": _json_logger(log_level),
            "httpx": _json_logger("WARNING"),
            "quotefeed": _json_logger(log_level),
            "request": _json_logger(log_level),
        },
    }

    dictConfig(dict_config)
