"""Logging setup for Observer processes.

Every log line carries the identifiers of the request being served:

- request_id: this hop only, from x-request-id or generated
- correlation_id: shared by all hops of one client request; a peer fetch
  forwards it, so the owner's "Caching ..." line and the requesting peer's
  access line can be joined
- trace_id / span_id: while an OpenTelemetry span is recording

Usage:
    from observer.observability.logging import configure_logging

    configure_logging(json_format=True, level="INFO")
    logging.getLogger(__name__).info("Caching doc-1...", extra={"group": "observer"})
"""

from __future__ import annotations

import contextvars
import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson
from opentelemetry import trace

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Attributes every LogRecord has; anything else was passed through `extra`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

# Third-party loggers capped at WARNING unless running at DEBUG
_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "opentelemetry", "asyncio")


def log_context() -> dict[str, str]:
    """Request, correlation and trace identifiers of the running context."""
    context: dict[str, str] = {}
    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id
    correlation_id = correlation_id_var.get()
    if correlation_id:
        context["correlation_id"] = correlation_id

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        context["trace_id"] = format(span_context.trace_id, "032x")
        context["span_id"] = format(span_context.span_id, "016x")
    return context


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers.

        {"timestamp": "2026-01-10T12:34:56.789+00:00", "level": "INFO",
         "logger": "observer.cache.group", "message": "Caching doc-1...",
         "correlation_id": "...", "group": "observer"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(log_context())

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value

        # Values orjson cannot encode fall back to str()
        return orjson.dumps(entry, default=str).decode()


class ConsoleFormatter(logging.Formatter):
    """Single-line output for local runs.

        12:34:56.789 INFO     observer.cache.group: Caching doc-1... [req=1a2b3c4d]
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<8}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        timestamp = f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}"
        line = f"{timestamp} {level} {record.name}: {record.getMessage()}"

        context = log_context()
        tags = []
        if "request_id" in context:
            tags.append(f"req={context['request_id'][:8]}")
        if "trace_id" in context:
            tags.append(f"trace={context['trace_id'][:8]}")
        if tags:
            line += f" [{' '.join(tags)}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Route all logging to stderr with the chosen formatter.

    Replaces any handlers already installed on the root logger, so calling
    it again (app reload, tests) does not duplicate output.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else ConsoleFormatter(use_colors))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    third_party_level = logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)
