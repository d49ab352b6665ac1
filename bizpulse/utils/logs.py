"""Logging setup and request-scoped context."""

from __future__ import annotations

import json
import logging
import logging.config
import os
from typing import Any, MutableMapping

from bizpulse.utils.dates import utc_now

CONTEXT_ATTR = "context"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, including any request context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        context = getattr(record, CONTEXT_ATTR, None)
        if context:
            log_data.update(context)
        return json.dumps(log_data, default=str)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    fmt = fmt or os.environ.get("LOG_FORMAT", "plain")
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
                "json": {"()": JSONFormatter},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "json" if fmt == "json" else "default",
                    "stream": "ext://sys.stdout",
                }
            },
            "loggers": {
                "bizpulse": {"level": level, "handlers": ["console"], "propagate": False},
                "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
                "sqlalchemy": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            },
            "root": {"level": level, "handlers": ["console"]},
        }
    )


class RequestLogger(logging.LoggerAdapter):
    """Attaches the adapter's context to every record it emits."""

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra[CONTEXT_ATTR] = {**self.extra, **extra.get(CONTEXT_ATTR, {})}
        kwargs["extra"] = extra
        suffix = " ".join(f"{key}={value}" for key, value in self.extra.items())
        return (f"{msg} [{suffix}]" if suffix else msg), kwargs


def request_logger(logger: logging.Logger, **context: Any) -> RequestLogger:
    return RequestLogger(logger, {k: v for k, v in context.items() if v is not None})
