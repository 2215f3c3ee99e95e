"""Logging setup for the API, the CLI and the dashboard.

Records go to stdout either as plain text or as one JSON object per line.
Request and user identifiers travel on the record through `get_context_logger`.
"""
from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict


TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Record attributes copied to the top level of a JSON line when present
CONTEXT_FIELDS = ("request_id", "user_id", "deal_id")

# Libraries that log every request or statement at INFO/DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "multipart", "sqlalchemy.engine", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """One JSON object per record: time, level, logger, message and any context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        data = getattr(record, "extra_data", None)
        if data:
            entry["data"] = data
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextLogger(logging.LoggerAdapter):
    """Adapter that stamps a fixed set of context fields onto every record."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure the root logger.

    Safe to call more than once; the latest call replaces earlier handlers.
    """
    formatter: Dict[str, Any]
    if json_format:
        formatter = {"()": JSONFormatter}
    else:
        formatter = {"format": TEXT_LOG_FORMAT, "datefmt": DATE_FORMAT}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": formatter},
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "default",
                }
            },
            "root": {"level": level.upper(), "handlers": ["stdout"]},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_context_logger(name: str, **context: Any) -> ContextLogger:
    """
    Logger whose records carry `context`, e.g. request_id or user_id.

    Example:
        log = get_context_logger(__name__, user_id=principal.user_id, deal_id=deal.id)
        log.info("Deal stage changed")
    """
    return ContextLogger(logging.getLogger(name), context)


__all__ = [
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "JSONFormatter",
    "ContextLogger",
    "CONTEXT_FIELDS",
]
