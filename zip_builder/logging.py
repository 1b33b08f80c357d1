"""Structured logging helpers: JSON lines with context.

``get_logger`` writes to stderr at the level named by ``ZIP_BUILDER_LOG_LEVEL``
(default WARNING). ``trace_to`` sends trace events to a file for ``-trace``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

LOG_LEVEL_ENV = "ZIP_BUILDER_LOG_LEVEL"
TRACE_LOGGER = "zip_builder.trace"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if fields:
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def log_level() -> int:
    """Level named by the environment; unknown names fall back to WARNING."""
    name = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper()
    return logging.getLevelNamesMapping().get(name, logging.WARNING)


def get_logger(name: str = "zip_builder") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(log_level())
        logger.propagate = False
    return logger


def get_tracer() -> logging.Logger:
    """Trace events go nowhere unless ``trace_to`` is active."""
    tracer = logging.getLogger(TRACE_LOGGER)
    tracer.setLevel(logging.INFO)
    tracer.propagate = False
    return tracer


def trace(event: str, **fields: Any) -> None:
    tracer = get_tracer()
    if tracer.handlers:
        tracer.info(event, extra={"fields": fields})


@contextmanager
def trace_to(path: str) -> Iterator[None]:
    tracer = get_tracer()
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setFormatter(JsonFormatter())
    tracer.addHandler(handler)
    try:
        yield
    finally:
        tracer.removeHandler(handler)
        handler.close()
